from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import StudentStatus


@dataclass(frozen=True)
class Student:
    id: int
    first_name: str
    last_name: str
    status: StudentStatus = StudentStatus.ACTIVE
    external_id: Optional[str] = None
    dob: Optional[date] = None
    can_leave_alone: bool = False
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == StudentStatus.ACTIVE
