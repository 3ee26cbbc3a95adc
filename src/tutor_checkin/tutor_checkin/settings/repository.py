from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from .model import PurgeResult


class SettingsRepository(Protocol):
    def get(self, key: str) -> Optional[Any]:
        """Decoded JSON value, or None when the key was never stored."""
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def server_time(self) -> datetime:
        """Database clock; doubles as the health ping."""
        raise NotImplementedError


class DataMaintenanceRepository(Protocol):
    def export_scans(self, *, start: Optional[datetime], end: Optional[datetime]) -> Sequence[dict[str, Any]]:
        raise NotImplementedError

    def export_messages(self, *, start: Optional[datetime], end: Optional[datetime]) -> Sequence[dict[str, Any]]:
        """One row per recipient (messages without recipients appear once)."""
        raise NotImplementedError

    def purge_older_than(self, cutoff: datetime) -> PurgeResult:
        """Delete recipients, messages and scans before ``cutoff`` in one transaction."""
        raise NotImplementedError
