"""Guardian SMS dispatch for a scan.

One ``message_log`` row per send, one ``message_recipient`` row per
guardian. Recipient status is SENT only when the gateway says SUCCESS.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from ..core.enums import RecipientStatus
from ..core.exceptions import ExternalServiceError
from ..guardians.model import Guardian
from .model import MessageRecipient, SmsResult
from .repository import MessageRepository
from .sms_client import ClickSendClient

logger = logging.getLogger(__name__)

INSUFFICIENT_CREDIT = "INSUFFICIENT_CREDIT"

INSUFFICIENT_CREDIT_MESSAGE = (
    "SMS gateway reports insufficient credit. No messages were delivered. "
    "Please top up your ClickSend balance and retry."
)


@dataclass(frozen=True)
class NotificationOutcome:
    message_log_id: int
    recipients: tuple[MessageRecipient, ...] = field(default_factory=tuple)
    sent: int = 0

    @property
    def failing_statuses(self) -> list[str]:
        out: list[str] = []
        for r in self.recipients:
            status = r.gateway_status or "UNKNOWN"
            if status != "SUCCESS" and status not in out:
                out.append(status)
        return out

    @property
    def gateway_failure(self) -> bool:
        return any(r.gateway_status != "SUCCESS" for r in self.recipients)

    @property
    def overall_gateway_status(self) -> str:
        return "FAILURE" if self.gateway_failure else "SUCCESS"

    @property
    def gateway_failure_reason(self) -> Optional[str]:
        if not self.gateway_failure:
            return None
        failing = self.failing_statuses
        if INSUFFICIENT_CREDIT in failing:
            return INSUFFICIENT_CREDIT
        return failing[0] if failing else "UNKNOWN"

    @property
    def gateway_failure_message(self) -> Optional[str]:
        if not self.gateway_failure:
            return None
        if self.gateway_failure_reason == INSUFFICIENT_CREDIT:
            return INSUFFICIENT_CREDIT_MESSAGE
        return (
            f"SMS gateway returned non-success statuses ({', '.join(self.failing_statuses)}). "
            "Check your SMS gateway account and retry."
        )


def recipient_status(phone: str, results: Sequence[SmsResult]) -> tuple[str, Optional[str]]:
    """(gateway_status, gateway_message_id) for one phone.

    Missing from a non-empty reply is UNKNOWN; an empty reply means the
    send itself failed.
    """
    for r in results:
        if r.to == phone:
            return r.status or "UNKNOWN", r.message_id
    return ("UNKNOWN" if results else "FAILED"), None


class Notifier:
    def __init__(self, messages: MessageRepository, sms: ClickSendClient):
        self._messages = messages
        self._sms = sms

    def notify(
        self,
        *,
        student_id: int,
        scan_event_id: Optional[int],
        template_key: Optional[str],
        body: str,
        guardians: Sequence[Guardian],
        created_by: Optional[int],
        now: datetime,
    ) -> NotificationOutcome:
        log_id = self._messages.create_log(
            student_id=student_id,
            scan_event_id=scan_event_id,
            template_key=template_key,
            body_rendered=body,
            created_by=created_by,
            created_at=now,
        )

        results: list[SmsResult] = []
        try:
            results = self._sms.send_many([{"to": g.phone_e164, "body": body} for g in guardians])
        except ExternalServiceError as e:
            logger.error("ClickSend send error: %s", e)

        recipients = []
        for g in guardians:
            gateway_status, gateway_id = recipient_status(g.phone_e164, results)
            recipients.append(
                MessageRecipient(
                    guardian_id=g.id,
                    phone_e164=g.phone_e164,
                    status=RecipientStatus.SENT if gateway_status == "SUCCESS" else RecipientStatus.FAILED,
                    gateway_status=gateway_status,
                    gateway_message_id=gateway_id,
                )
            )
        self._messages.add_recipients(log_id, recipients)

        outcome = NotificationOutcome(message_log_id=log_id, recipients=tuple(recipients), sent=len(results))
        if outcome.gateway_failure:
            logger.warning(
                "SMS for student %s (log %s) not fully delivered: %s",
                student_id,
                log_id,
                outcome.gateway_failure_reason,
            )
        return outcome
