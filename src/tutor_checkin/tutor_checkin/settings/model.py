from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..core.constants import DEFAULT_CENTRE_NAME, DEFAULT_TIMEZONE
from ..core.enums import ScanType


@dataclass(frozen=True)
class OrgSettings:
    centre_name: str = DEFAULT_CENTRE_NAME
    timezone: str = DEFAULT_TIMEZONE
    send_on_check_in: bool = True
    send_on_check_out: bool = True

    def sms_enabled_for(self, scan_type: ScanType) -> bool:
        if scan_type == ScanType.CHECK_IN:
            return self.send_on_check_in
        return self.send_on_check_out

    def to_json(self) -> dict[str, Any]:
        return {
            "centreName": self.centre_name,
            "timezone": self.timezone,
            "smsPolicy": {
                "sendOnCheckIn": self.send_on_check_in,
                "sendOnCheckOut": self.send_on_check_out,
            },
        }


@dataclass(frozen=True)
class PurgeResult:
    recipients: int = 0
    messages: int = 0
    scans: int = 0
