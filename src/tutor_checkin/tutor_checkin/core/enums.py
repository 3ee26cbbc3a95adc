from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Roles used by the route guards."""

    ADMIN = "ADMIN"
    STAFF = "STAFF"


class StudentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ScanType(str, Enum):
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"


class RecipientStatus(str, Enum):
    """Normalised delivery status stored per message recipient."""

    SENT = "SENT"
    FAILED = "FAILED"
