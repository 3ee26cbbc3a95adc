from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Optional

from ..common.datetime_utils import format_message_date, format_message_time
from ..core.constants import DEFAULT_CENTRE_NAME, DEFAULT_TIMEZONE

_TOKEN_RE = re.compile(r"\{([^}]+)\}")


def _field(student: Any, snake: str, camel: str) -> Any:
    if student is None:
        return None
    if isinstance(student, dict):
        return student.get(snake, student.get(camel))
    return getattr(student, snake, None)


def render_template(
    text: Optional[str],
    *,
    student: Any = None,
    type: str = "CHECK_IN",
    now: datetime,
    centre_name: Optional[str] = None,
    timezone: Optional[str] = None,
) -> str:
    """Expand ``{token}`` placeholders in an SMS template.

    Supported: {student.firstName} {student.lastName} {student.fullName}
    {student.id} {type} {time} {date} {center.name} {centre.name} {timezone}.
    Unknown tokens are left untouched so admins can see what did not match.
    """
    tz = timezone or DEFAULT_TIMEZONE
    centre = centre_name or DEFAULT_CENTRE_NAME

    first = str(_field(student, "first_name", "firstName") or "")
    last = str(_field(student, "last_name", "lastName") or "")
    full = " ".join(p for p in (first, last) if p).strip() or "Student"
    student_id = _field(student, "id", "id")

    values = {
        "student.firstName": first or "Student",
        "student.lastName": last,
        "student.fullName": full,
        "student.id": "" if student_id is None else str(student_id),
        "type": str(type or "").upper(),
        "time": format_message_time(now, tz),
        "date": format_message_date(now, tz),
        "center.name": centre,
        "centre.name": centre,
        "timezone": tz,
    }

    return _TOKEN_RE.sub(lambda m: values.get(m.group(1), m.group(0)), str(text or "")).strip()
