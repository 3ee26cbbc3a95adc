"""JSON shapes for entities returned by the API.

Entity payloads keep the column names (snake_case) so exports, list views
and the edit forms all share one vocabulary.
"""
from __future__ import annotations

from typing import Any, Optional

from .datetime_utils import to_iso


def _iso(value) -> Optional[str]:
    return to_iso(value) or None


def student_json(s) -> dict[str, Any]:
    return {
        "id": s.id,
        "external_id": s.external_id,
        "first_name": s.first_name,
        "last_name": s.last_name,
        "dob": s.dob.isoformat() if s.dob else None,
        "status": s.status.value,
        "can_leave_alone": s.can_leave_alone,
        "notes": s.notes,
        "created_at": _iso(s.created_at),
        "updated_at": _iso(s.updated_at),
    }


def guardian_json(g) -> dict[str, Any]:
    return {
        "id": g.id,
        "first_name": g.first_name,
        "last_name": g.last_name,
        "name": g.name,
        "relationship": g.relationship,
        "relationship_type": g.relationship_type,
        "email": g.email,
        "phone_e164": g.phone_e164,
        "phone_raw": g.phone_raw,
        "phone_valid": g.phone_valid,
        "active": g.active,
        "created_at": _iso(g.created_at),
    }


def template_json(t) -> dict[str, Any]:
    return {"key": t.key, "text": t.text, "updated_at": _iso(t.updated_at)}


def recipient_json(r) -> dict[str, Any]:
    return {
        "id": r.id,
        "to": r.phone_e164,
        "status": r.status.value,
        "gateway_message_id": r.gateway_message_id,
        "gateway_status": r.gateway_status,
        "updated_at": _iso(r.updated_at),
    }


def message_json(m) -> dict[str, Any]:
    out = {
        "id": m.id,
        "student_id": m.student_id,
        "template_key": m.template_key,
        "body_rendered": m.body_rendered,
        "created_at": _iso(m.created_at),
        "recipients": [recipient_json(r) for r in m.recipients],
    }
    if m.student is not None:
        out["student"] = {
            "id": m.student.id,
            "firstName": m.student.first_name or None,
            "lastName": m.student.last_name or None,
            "dob": m.student.dob.isoformat() if m.student.dob else None,
        }
    return out


def scan_json(e) -> dict[str, Any]:
    return {
        "id": e.id,
        "student_id": e.student_id,
        "qr_code_id": e.qr_code_id,
        "type": e.type.value,
        "scanned_by": e.scanned_by,
        "scanned_at": _iso(e.scanned_at),
        "was_duplicate": e.was_duplicate,
        "meta": dict(e.meta or {}),
    }
