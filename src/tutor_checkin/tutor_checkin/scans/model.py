from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from ..core.enums import ScanType


@dataclass(frozen=True)
class ScanEvent:
    id: int
    student_id: int
    type: ScanType
    scanned_at: datetime
    qr_code_id: Optional[int] = None
    scanned_by: Optional[int] = None
    was_duplicate: bool = False
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def headcount_only(self) -> bool:
        return bool(self.meta.get("headcountOnly"))


@dataclass(frozen=True)
class DayScan:
    """Non-duplicate scan of the current day, used for the dashboard counters."""

    student_id: int
    type: ScanType
    scanned_at: datetime
    has_message: bool


@dataclass(frozen=True)
class RecentScan:
    event: ScanEvent
    has_message: bool
    student_first: Optional[str] = None
    student_last: Optional[str] = None
    student_dob: Optional[date] = None
