"""What is printed inside a student's QR image, and how scanned text is read back."""
from __future__ import annotations

import json
from typing import Any

from ..core.constants import QR_PAYLOAD_VERSION


def encode_payload(token: str) -> str:
    return json.dumps({"v": QR_PAYLOAD_VERSION, "token": token}, separators=(",", ":"))


def extract_token(scanned: Any) -> str:
    """Token from scanned text: either the raw token or the JSON payload.

    Returns '' when nothing usable was scanned.
    """
    text = str(scanned or "").strip()
    if text.startswith("{"):
        try:
            data = json.loads(text)
        except ValueError:
            return text
        if isinstance(data, dict):
            return str(data.get("token") or "").strip()
    return text
