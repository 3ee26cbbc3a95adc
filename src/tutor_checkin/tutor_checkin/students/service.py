from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

from ..audit.service import AuditService
from ..common.datetime_utils import now_utc, parse_iso_date
from ..common.validators import clamp_int, parse_id_list, validate_name
from ..core.enums import StudentStatus
from ..core.exceptions import NotFoundError, ValidationError
from ..guardians.repository import GuardianRepository
from .model import Student
from .repository import StudentRepository

# camelCase payload keys accepted alongside the column names
_CAMEL_TO_SNAKE = {
    "externalId": "external_id",
    "firstName": "first_name",
    "lastName": "last_name",
    "dob": "dob",
    "status": "status",
    "canLeaveAlone": "can_leave_alone",
    "notes": "notes",
}
_ALLOWED = set(_CAMEL_TO_SNAKE.values())


def parse_status(value: Any) -> StudentStatus:
    try:
        return StudentStatus(str(value or "").strip().upper())
    except ValueError:
        raise ValidationError("status must be ACTIVE or INACTIVE")


def _parse_dob(value: Any):
    if value in (None, ""):
        return None
    try:
        return parse_iso_date(str(value).strip())
    except ValueError:
        raise ValidationError("dob must be YYYY-MM-DD")


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    v = str(value).strip()
    return v or None


class StudentService:
    def __init__(self, students: StudentRepository, guardians: GuardianRepository, audit: AuditService):
        self._students = students
        self._guardians = guardians
        self._audit = audit

    def list_students(
        self,
        *,
        search: Any = "",
        status: Any = "",
        id: Any = None,
        ids: Any = None,
        limit: Any = None,
        offset: Any = None,
    ) -> Sequence[Student]:
        return self._students.list_students(
            search=str(search or "").strip(),
            status=parse_status(status) if status else None,
            ids=parse_id_list(id, ids),
            limit=clamp_int(limit, default=50, lo=1, hi=1000),
            offset=clamp_int(offset, default=0, lo=0),
        )

    def get_student(self, student_id: int) -> Student:
        student = self._students.get_by_id(student_id)
        if not student:
            raise NotFoundError("Student not found")
        return student

    def create_student(
        self,
        *,
        actor_id: Optional[int],
        first_name: Any,
        last_name: Any,
        external_id: Any = None,
        dob: Any = None,
        status: Any = StudentStatus.ACTIVE.value,
        can_leave_alone: Any = False,
        notes: Any = None,
    ) -> Student:
        if not first_name or not last_name:
            raise ValidationError("firstName and lastName are required")
        first = validate_name("firstName", first_name)
        last = validate_name("lastName", last_name)

        student = self._students.create_student(
            first_name=first,
            last_name=last,
            external_id=_optional_text(external_id),
            dob=_parse_dob(dob),
            status=parse_status(status or StudentStatus.ACTIVE.value),
            can_leave_alone=bool(can_leave_alone),
            notes=_optional_text(notes),
        )
        self._audit.log(actor_id, "STUDENT_CREATE", "student", student.id, {"firstName": first, "lastName": last})
        return student

    def update_student(
        self,
        *,
        actor_id: Optional[int],
        student_id: int,
        body: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> Student:
        fields: dict[str, Any] = {}
        for raw_key, raw_value in body.items():
            key = _CAMEL_TO_SNAKE.get(raw_key, raw_key)
            if key not in _ALLOWED:
                continue
            if key == "first_name":
                fields[key] = validate_name("firstName", raw_value)
            elif key == "last_name":
                fields[key] = validate_name("lastName", raw_value)
            elif key == "status":
                fields[key] = parse_status(raw_value)
            elif key == "dob":
                fields[key] = _parse_dob(raw_value)
            elif key == "can_leave_alone":
                fields[key] = bool(raw_value)
            else:
                fields[key] = _optional_text(raw_value)

        if not fields:
            raise ValidationError("No fields to update")

        updated = self._students.update_student(student_id, fields=fields, now=now or now_utc())
        if not updated:
            raise NotFoundError("Not found")

        self._audit.log(actor_id, "STUDENT_UPDATE", "student", student_id, dict(body))
        return updated

    def link_guardian(self, *, actor_id: Optional[int], student_id: int, guardian_id: int, is_primary: Any = False) -> None:
        self.get_student(student_id)
        if not self._guardians.get_by_id(guardian_id):
            raise NotFoundError("Guardian not found")

        self._students.link_guardian(student_id=student_id, guardian_id=guardian_id, is_primary=bool(is_primary))
        self._audit.log(actor_id, "STUDENT_LINK_GUARDIAN", "student", student_id, {"guardianId": guardian_id})

    def unlink_guardian(self, *, actor_id: Optional[int], student_id: int, guardian_id: int) -> None:
        if not self._students.unlink_guardian(student_id=student_id, guardian_id=guardian_id):
            raise NotFoundError("Link not found")
        self._audit.log(actor_id, "STUDENT_UNLINK_GUARDIAN", "student", student_id, {"guardianId": guardian_id})

    def delete_student(self, *, actor_id: Optional[int], student_id: int) -> list[int]:
        deleted_guardian_ids = self._students.delete_student(student_id)
        if deleted_guardian_ids is None:
            raise NotFoundError("Not found")

        self._audit.log(actor_id, "STUDENT_DELETE", "student", student_id, {"deletedGuardianIds": deleted_guardian_ids})
        return deleted_guardian_ids
