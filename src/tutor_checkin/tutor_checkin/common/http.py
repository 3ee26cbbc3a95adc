from __future__ import annotations

from typing import Any

from flask import request


def json_body() -> dict[str, Any]:
    """Request JSON object, or {} when the body is missing or not an object."""
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def pick(body: dict[str, Any], *keys: str, default: Any = None, skip_none: bool = False) -> Any:
    """First present key wins, so camelCase and snake_case payloads both work.

    With ``skip_none`` a key holding null counts as absent.
    """
    for key in keys:
        if key in body and not (skip_none and body[key] is None):
            return body[key]
    return default
