from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from .model import MessageLog, MessageRecipient, MessageTemplate


class TemplateRepository(Protocol):
    def list_all(self) -> Sequence[MessageTemplate]:
        raise NotImplementedError

    def get_text(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def upsert_text(self, key: str, text: str) -> MessageTemplate:
        raise NotImplementedError


class MessageRepository(Protocol):
    def create_log(
        self,
        *,
        student_id: int,
        scan_event_id: Optional[int],
        template_key: Optional[str],
        body_rendered: str,
        created_by: Optional[int],
        created_at: datetime,
        trigger_type: str = "SCAN",
    ) -> int:
        raise NotImplementedError

    def add_recipients(self, message_log_id: int, recipients: Sequence[MessageRecipient]) -> None:
        raise NotImplementedError

    def list_messages(
        self,
        *,
        student_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
        include_student: bool = False,
    ) -> Sequence[MessageLog]:
        """Newest first, each with its recipients."""
        raise NotImplementedError
