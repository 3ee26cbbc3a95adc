from __future__ import annotations

from typing import Any, Optional, Sequence

from ..common.validators import clamp_int
from ..core.exceptions import ValidationError
from .model import MessageLog, MessageTemplate
from .repository import MessageRepository, TemplateRepository


def wants_student(include: Any) -> bool:
    """``include=student`` (comma separated, case-insensitive)."""
    if not isinstance(include, str):
        return False
    return "student" in [p.strip() for p in include.lower().split(",")]


class TemplateService:
    def __init__(self, templates: TemplateRepository):
        self._templates = templates

    def list_templates(self) -> Sequence[MessageTemplate]:
        return self._templates.list_all()

    def get_text(self, key: str) -> Optional[str]:
        return self._templates.get_text(str(key).upper())

    def update_template(self, key: str, text: Any) -> MessageTemplate:
        key = str(key or "").strip().upper()
        if not key:
            raise ValidationError("key is required")
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("text is required")
        return self._templates.upsert_text(key, text)


class MessageService:
    def __init__(self, messages: MessageRepository):
        self._messages = messages

    def list_messages(
        self,
        *,
        student_id: Any = None,
        limit: Any = None,
        offset: Any = None,
        include: Any = None,
    ) -> Sequence[MessageLog]:
        sid = clamp_int(student_id, default=0, lo=0) if student_id else 0
        return self._messages.list_messages(
            student_id=sid or None,
            limit=clamp_int(limit, default=50, lo=1, hi=500),
            offset=clamp_int(offset, default=0, lo=0),
            include_student=wants_student(include),
        )
