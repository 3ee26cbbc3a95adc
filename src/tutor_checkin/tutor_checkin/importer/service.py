"""Bulk student import from a CSV export of the enrolment sheet.

Columns may be camelCase or snake_case. Each row creates one student, up to
two guardians (``g1_*`` / ``g2_*``) and an active QR token; row failures are
reported with their 1-based row number and never stop the import.
"""
from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from ..common.datetime_utils import parse_iso_date
from ..common.validators import NAME_RULE_MESSAGE, is_valid_name, to_bool, to_e164_au
from ..core.constants import DEFAULT_RELATIONSHIP
from ..core.enums import StudentStatus
from ..core.exceptions import ValidationError
from ..guardians.repository import GuardianRepository
from ..qr.service import QrService
from ..students.repository import StudentRepository

logger = logging.getLogger(__name__)

MAX_IMPORT_BYTES = 10 * 1024 * 1024


@dataclass
class ImportResult:
    total: int = 0
    created: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    created_ids: list[int] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {"total": self.total, "created": self.created, "errors": self.errors, "createdIds": self.created_ids}


def _col(row: dict[str, str], *keys: str) -> Optional[str]:
    for key in keys:
        if key in row and row[key] is not None:
            return row[key]
    return None


def _parse_rows(data: bytes) -> list[dict[str, str]]:
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ValidationError("Invalid CSV: file must be UTF-8 encoded")
    try:
        reader = csv.DictReader(io.StringIO(text))
        rows = []
        for raw in reader:
            row = {str(k).strip(): (v or "").strip() for k, v in raw.items() if isinstance(k, str)}
            if any(row.values()):
                rows.append(row)
        return rows
    except csv.Error as e:
        raise ValidationError(f"Invalid CSV: {e}")


def _dob_or_none(value: Optional[str]):
    if not value:
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        return None


class ImportService:
    def __init__(self, students: StudentRepository, guardians: GuardianRepository, qr: QrService):
        self._students = students
        self._guardians = guardians
        self._qr = qr

    def import_csv(self, data: Optional[bytes], *, created_by: Optional[int] = None) -> ImportResult:
        if not data:
            raise ValidationError("CSV file is required")
        if len(data) > MAX_IMPORT_BYTES:
            raise ValidationError("CSV file must be 10 MB or smaller")

        rows = _parse_rows(data)
        result = ImportResult(total=len(rows))

        for i, r in enumerate(rows, start=1):
            first = _col(r, "firstName", "first_name")
            last = _col(r, "lastName", "last_name")
            if not first or not last:
                result.errors.append({"row": i, "message": "Missing student first/last name"})
                continue
            if not is_valid_name(first):
                result.errors.append({"row": i, "message": f"Invalid student firstName: {NAME_RULE_MESSAGE}"})
                continue
            if not is_valid_name(last):
                result.errors.append({"row": i, "message": f"Invalid student lastName: {NAME_RULE_MESSAGE}"})
                continue

            status = (_col(r, "status") or "ACTIVE").upper()
            try:
                student = self._students.create_student(
                    first_name=first,
                    last_name=last,
                    external_id=_col(r, "externalId", "external_id") or None,
                    dob=_dob_or_none(_col(r, "dob", "birthdate", "date_of_birth")),
                    status=StudentStatus.INACTIVE if status == "INACTIVE" else StudentStatus.ACTIVE,
                    can_leave_alone=to_bool(_col(r, "canLeaveAlone", "can_leave_alone")),
                    notes=_col(r, "notes") or None,
                )
                for prefix, primary_default in (("g1", "true"), ("g2", "false")):
                    self._maybe_add_guardian(student.id, r, prefix, primary_default)
                self._qr.ensure_active_token(student.id, created_by=created_by)
            except Exception as e:
                logger.warning("CSV import row %d failed: %s", i, e)
                result.errors.append({"row": i, "message": str(e)})
                continue

            result.created += 1
            result.created_ids.append(student.id)

        logger.info("CSV import: %d/%d rows created, %d errors", result.created, result.total, len(result.errors))
        return result

    def _maybe_add_guardian(self, student_id: int, r: dict[str, str], prefix: str, primary_default: str) -> None:
        """Guardian columns are optional; incomplete or invalid guardians are skipped."""
        first = _col(r, f"{prefix}_firstName", f"{prefix}_first_name") or ""
        last = _col(r, f"{prefix}_lastName", f"{prefix}_last_name") or ""
        phone = _col(r, f"{prefix}_phone") or ""
        if not first or not last or not phone:
            return
        if not is_valid_name(first) or not is_valid_name(last):
            return
        e164 = to_e164_au(phone)
        if not e164:
            return

        guardian = self._guardians.create_guardian(
            first_name=first,
            last_name=last,
            phone_e164=e164,
            phone_raw=phone,
            relationship=_col(r, f"{prefix}_relationship") or DEFAULT_RELATIONSHIP,
            email=_col(r, f"{prefix}_email") or None,
        )
        self._students.link_guardian(
            student_id=student_id,
            guardian_id=guardian.id,
            is_primary=to_bool(_col(r, f"{prefix}_primary") or primary_default),
        )
