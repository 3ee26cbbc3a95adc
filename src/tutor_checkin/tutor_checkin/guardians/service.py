from __future__ import annotations

from typing import Any, Optional, Sequence

from ..audit.service import AuditService
from ..common.http import pick
from ..common.validators import (
    clamp_int,
    is_e164,
    parse_id_list,
    parse_positive_int,
    split_full_name,
    to_e164_au,
    validate_name,
    validate_optional_name,
)
from ..core.constants import DEFAULT_RELATIONSHIP
from ..core.exceptions import NotFoundError, ValidationError
from ..students.model import Student
from .model import Guardian
from .repository import GuardianRepository

_MISSING = object()


def _yes_no(value: Any) -> Optional[bool]:
    v = str(value or "").strip().lower()
    if v in ("yes", "no"):
        return v == "yes"
    return None


class GuardianService:
    def __init__(self, guardians: GuardianRepository, audit: AuditService):
        self._guardians = guardians
        self._audit = audit

    def list_guardians(
        self,
        *,
        student_id: Any = None,
        search: Any = "",
        relationship: Any = "",
        active: Any = "",
        phone_valid: Any = "",
        id: Any = None,
        ids: Any = None,
        limit: Any = None,
        offset: Any = None,
    ) -> Sequence[Guardian]:
        if student_id is not None:
            return self._guardians.list_for_student(parse_positive_int(student_id, "studentId"))

        return self._guardians.list_guardians(
            search=str(search or "").strip(),
            relationship=str(relationship or "").strip(),
            active=_yes_no(active),
            phone_valid=_yes_no(phone_valid),
            ids=parse_id_list(id, ids),
            limit=clamp_int(limit, default=200, lo=1),
            offset=clamp_int(offset, default=0, lo=0),
        )

    def create_guardian(
        self,
        *,
        actor_id: Optional[int],
        name: Any = None,
        first_name: Any = None,
        last_name: Any = None,
        relationship: Any = DEFAULT_RELATIONSHIP,
        phone: Any = None,
    ) -> Guardian:
        if (not name and not (first_name and last_name)) or not phone:
            raise ValidationError("Provide name or firstName+lastName, and phone")
        if not is_e164(phone):
            raise ValidationError("phone must be E.164 format, e.g., +61412345678")

        derived_first, derived_last = split_full_name(name)
        first = validate_name("firstName", first_name if first_name is not None else derived_first)
        last = validate_optional_name("lastName", last_name if last_name is not None else derived_last)

        guardian = self._guardians.create_guardian(
            first_name=first,
            last_name=last,
            relationship=str(relationship or DEFAULT_RELATIONSHIP).strip() or DEFAULT_RELATIONSHIP,
            phone_raw=phone,
            phone_e164=phone,
        )
        self._audit.log(actor_id, "GUARDIAN_CREATE", "guardian", guardian.id, {
            "first_name": first,
            "last_name": last,
            "phone_e164": phone,
        })
        return guardian

    def students_for_guardian(self, guardian_id: int) -> Sequence[Student]:
        return self._guardians.students_for_guardian(guardian_id)

    def students_by_guardian_ids(self, ids: Any) -> dict[int, list[Student]]:
        guardian_ids = parse_id_list(ids)
        if not guardian_ids:
            return {}
        grouped = self._guardians.students_by_guardian_ids(guardian_ids)
        # Every requested id is present, even without students.
        return {gid: list(grouped.get(gid, [])) for gid in guardian_ids}

    def update_guardian(self, *, actor_id: Optional[int], guardian_id: int, body: dict[str, Any]) -> Guardian:
        first_name = pick(body, "firstName", "first_name", default=_MISSING, skip_none=True)
        last_name = pick(body, "lastName", "last_name", default=_MISSING, skip_none=True)
        relationship = pick(body, "relationship", "relationship_type", default=_MISSING, skip_none=True)
        email = body.get("email", _MISSING)
        phone_raw = pick(body, "phoneRaw", "phone_raw", default=_MISSING, skip_none=True)
        phone_e164 = pick(body, "phoneE164", "phone_e164", default=_MISSING, skip_none=True)
        phone_valid = pick(body, "phoneValid", "phone_valid", default=_MISSING, skip_none=True)
        active = pick(body, "active", "isActive", default=_MISSING, skip_none=True)

        # Direct E.164 is only checked when no raw number is supplied.
        if phone_raw is _MISSING and phone_e164 not in (_MISSING, None):
            if not is_e164(str(phone_e164)):
                raise ValidationError("phoneE164 must be E.164 format, e.g., +61412345678")

        fields: dict[str, Any] = {}
        if first_name is not _MISSING:
            fields["first_name"] = validate_optional_name("firstName", first_name)
        if last_name is not _MISSING:
            fields["last_name"] = validate_optional_name("lastName", last_name)

        link_relationship = None
        if relationship is not _MISSING:
            rel = str(relationship or "").strip()
            fields["relationship"] = rel or DEFAULT_RELATIONSHIP
            link_relationship = rel or None

        if email is not _MISSING:
            fields["email"] = (str(email).strip() or None) if email is not None else None

        if phone_raw is not _MISSING:
            raw = str(phone_raw or "").strip()
            derived = to_e164_au(raw)
            if raw and not derived:
                raise ValidationError("Invalid AU phone number in phoneRaw")
            fields["phone_raw"] = raw or None
            fields["phone_e164"] = derived or None
        elif phone_e164 is not _MISSING:
            fields["phone_e164"] = str(phone_e164 or "").strip() or None

        if phone_valid is not _MISSING:
            fields["phone_valid"] = bool(phone_valid)
        if active is not _MISSING:
            fields["active"] = bool(active)

        updated = self._guardians.update_guardian(
            guardian_id,
            fields=fields,
            link_relationship=link_relationship,
            update_links=relationship is not _MISSING,
        )
        if not updated:
            raise NotFoundError("Guardian not found")

        self._audit.log(actor_id, "GUARDIAN_UPDATE", "guardian", guardian_id, dict(body))
        return updated

    def delete_guardian(self, *, actor_id: Optional[int], guardian_id: int) -> None:
        before = self._guardians.get_by_id(guardian_id)
        if not before:
            raise NotFoundError("Guardian not found")
        if not self._guardians.delete_guardian(guardian_id):
            raise NotFoundError("Guardian not found")

        self._audit.log(actor_id, "GUARDIAN_DELETE", "guardian", guardian_id, {
            "first_name": before.first_name,
            "last_name": before.last_name,
        })
