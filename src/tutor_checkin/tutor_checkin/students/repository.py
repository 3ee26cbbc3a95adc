from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Protocol, Sequence

from ..core.enums import StudentStatus
from .model import Student


class StudentRepository(Protocol):
    def get_by_id(self, student_id: int) -> Optional[Student]:
        raise NotImplementedError

    def list_students(
        self,
        *,
        search: str = "",
        status: Optional[StudentStatus] = None,
        ids: Sequence[int] = (),
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Student]:
        raise NotImplementedError

    def create_student(
        self,
        *,
        first_name: str,
        last_name: str,
        external_id: Optional[str] = None,
        dob: Optional[date] = None,
        status: StudentStatus = StudentStatus.ACTIVE,
        can_leave_alone: bool = False,
        notes: Optional[str] = None,
    ) -> Student:
        raise NotImplementedError

    def update_student(self, student_id: int, *, fields: dict[str, Any], now: datetime) -> Optional[Student]:
        raise NotImplementedError

    def link_guardian(
        self,
        *,
        student_id: int,
        guardian_id: int,
        is_primary: bool,
        relationship_type: Optional[str] = None,
    ) -> None:
        """Insert the link, or update ``is_primary`` when it already exists."""
        raise NotImplementedError

    def unlink_guardian(self, *, student_id: int, guardian_id: int) -> bool:
        raise NotImplementedError

    def delete_student(self, student_id: int) -> Optional[list[int]]:
        """Delete a student and any guardian left without students.

        Returns the deleted guardian ids, or None when the student does not exist.
        """
        raise NotImplementedError
