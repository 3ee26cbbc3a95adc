from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from ..core.enums import ScanType
from .model import DayScan, RecentScan, ScanEvent


class ScanRepository(Protocol):
    def insert(
        self,
        *,
        student_id: int,
        qr_code_id: Optional[int],
        type: ScanType,
        scanned_by: Optional[int],
        scanned_at: datetime,
        was_duplicate: bool,
        meta: dict[str, Any],
    ) -> ScanEvent:
        raise NotImplementedError

    def latest_of_type(
        self,
        student_id: int,
        type: ScanType,
        *,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Optional[ScanEvent]:
        """Most recent scan of ``type``, optionally within [start, end)."""
        raise NotImplementedError

    def scans_between(self, start: datetime, end: datetime) -> Sequence[DayScan]:
        """Non-duplicate scans in [start, end), oldest first."""
        raise NotImplementedError

    def recent(self, limit: int) -> Sequence[RecentScan]:
        raise NotImplementedError
