"""ClickSend REST v3 client.

Only the bulk send endpoint is used: one POST carries every recipient and
the reply lists a status per message (``SUCCESS``, ``INSUFFICIENT_CREDIT``,
...). Non-2xx replies raise ``ExternalServiceError``.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Optional

import httpx

from ..core.exceptions import ExternalServiceError
from .model import SmsResult

logger = logging.getLogger(__name__)

CLICK_SEND_API = "https://rest.clicksend.com/v3/sms/send"

_NUMERIC_SENDER_RE = re.compile(r"^\+?\d+$")
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")


def normalize_sender(raw: Optional[str]) -> Optional[str]:
    """Numeric senders are kept (replies work); alphanumeric ones are
    stripped to letters/digits and cut to 11 characters."""
    value = (raw or "").strip()
    if not value:
        return None
    if _NUMERIC_SENDER_RE.match(value):
        return value
    cleaned = _NON_ALNUM_RE.sub("", value)[:11]
    return cleaned or None


def _reply_messages(data: Any) -> list[dict[str, Any]]:
    """Per-message entries of a 2xx reply; an unexpected shape reads as no replies."""
    inner = data.get("data") if isinstance(data, dict) else None
    messages = inner.get("messages") if isinstance(inner, dict) else None
    if not isinstance(messages, list):
        return []
    return [m for m in messages if isinstance(m, dict)]


class ClickSendClient:
    def __init__(
        self,
        *,
        username: str,
        api_key: str,
        sender: Optional[str] = None,
        url: str = CLICK_SEND_API,
        timeout: float = 15.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._auth = (username or "", api_key or "")
        self._sender = normalize_sender(sender)
        self._url = url
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self._auth[0] and self._auth[1])

    def send_many(self, items: Iterable[dict[str, str]]) -> list[SmsResult]:
        """Send ``[{"to": "+61...", "body": "..."}]`` in one request."""
        messages: list[dict[str, Any]] = []
        for item in items:
            msg: dict[str, Any] = {"to": item["to"], "source": "api", "body": item["body"]}
            if self._sender:
                msg["from"] = self._sender
            messages.append(msg)
        if not messages:
            return []

        try:
            r = self._client.post(self._url, json={"messages": messages}, auth=self._auth)
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"ClickSend error: {e}") from e

        try:
            data = r.json()
        except ValueError:
            data = {}

        if not r.is_success:
            detail = None
            if isinstance(data, dict):
                detail = data.get("response_msg") or data.get("error")
            raise ExternalServiceError(
                f"ClickSend error: {detail or r.reason_phrase}",
                status_code=r.status_code,
                details=data or r.text,
            )

        results = [
            SmsResult(
                to=str(m.get("to") or ""),
                message_id=m.get("message_id"),
                status=str(m.get("status") or ""),
            )
            for m in _reply_messages(data)
        ]
        logger.info("ClickSend accepted %d/%d messages", sum(1 for m in results if m.status == "SUCCESS"), len(messages))
        return results
