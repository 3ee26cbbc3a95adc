from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from ..core.enums import RecipientStatus


@dataclass(frozen=True)
class MessageTemplate:
    key: str
    text: str
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class MessageRecipient:
    phone_e164: str
    status: RecipientStatus
    gateway_status: Optional[str] = None
    gateway_message_id: Optional[str] = None
    guardian_id: Optional[int] = None
    id: Optional[int] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class MessageStudent:
    """Student snapshot embedded in message listings (``include=student``)."""

    id: int
    first_name: Optional[str]
    last_name: Optional[str]
    dob: Optional[date] = None


@dataclass(frozen=True)
class MessageLog:
    id: int
    student_id: int
    body_rendered: str
    template_key: Optional[str] = None
    trigger_type: str = "SCAN"
    scan_event_id: Optional[int] = None
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
    recipients: tuple[MessageRecipient, ...] = field(default_factory=tuple)
    student: Optional[MessageStudent] = None


@dataclass(frozen=True)
class SmsResult:
    """One entry of the gateway reply."""

    to: str
    message_id: Optional[str]
    status: str
