from __future__ import annotations

import re
import unicodedata
from typing import Any, Iterable, Optional

from ..core.constants import NAME_MAX_LENGTH
from ..core.exceptions import ValidationError

E164_RE = re.compile(r"^\+[1-9][0-9]{1,14}$")
EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")
AU_BARE_MOBILE_RE = re.compile(r"^4\d{8}$")

NAME_RULE_MESSAGE = "must contain only letters (plus spaces, hyphens, apostrophes) and start/end with a letter"

_NAME_SEPARATORS = {"'", "-", "’"}


def require_non_empty(value: Optional[str], field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} is required")
    return str(value).strip()


def require_min_length(value: Optional[str], field_name: str, min_len: int) -> str:
    if value is None or len(str(value)) < min_len:
        raise ValidationError(f"{field_name} must be at least {min_len} characters")
    return str(value)


def _is_letter(ch: str) -> bool:
    return unicodedata.category(ch)[0] in ("L", "M")


def is_valid_name(value: Any) -> bool:
    """Letters (any script) and combining marks, with inner spaces, hyphens
    and apostrophes. Must start and end with a letter."""
    v = str(value if value is not None else "").strip()
    if not v or len(v) > NAME_MAX_LENGTH:
        return False
    if not _is_letter(v[0]) or not _is_letter(v[-1]):
        return False
    return all(_is_letter(ch) or ch.isspace() or ch in _NAME_SEPARATORS for ch in v)


def validate_name(label: str, value: Any) -> str:
    """Required name: returns the trimmed value or raises ValidationError."""
    v = str(value if value is not None else "").strip()
    if not v:
        raise ValidationError(f"{label} is required")
    if len(v) > NAME_MAX_LENGTH:
        raise ValidationError(f"{label} must be {NAME_MAX_LENGTH} characters or less")
    if not is_valid_name(v):
        raise ValidationError(f"{label} {NAME_RULE_MESSAGE}")
    return v


def validate_optional_name(label: str, value: Any) -> str:
    """Optional name: empty is allowed and returned as ''."""
    if value is None:
        return ""
    v = str(value).strip()
    if not v:
        return ""
    return validate_name(label, v)


def is_e164(phone: Any) -> bool:
    return isinstance(phone, str) and bool(E164_RE.match(phone))


def is_email(value: Any) -> bool:
    return isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))


def to_e164_au(value: Any) -> str:
    """Normalise an Australian number to E.164.

    0436536668, 436536668 and 61436536668 all become +61436536668.
    Returns '' when the input is not a recognised AU format.
    """
    s = re.sub(r"[^\d+]", "", str(value or "").strip())
    if not s:
        return ""
    if s.startswith("+"):
        s = s[1:]
    if s.startswith("61"):
        return "+61" + s[2:]
    if s.startswith("0"):
        return "+61" + s[1:]
    if AU_BARE_MOBILE_RE.match(s):
        return "+61" + s
    return ""


def split_full_name(full: Optional[str]) -> tuple[str, str]:
    parts = (full or "").split()
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], " ".join(parts[1:])


def to_bool(value: Any) -> bool:
    return str(value if value is not None else "").strip().lower() in {"true", "1", "yes", "y"}


def parse_positive_int(value: Any, field_name: str) -> int:
    try:
        n = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a positive integer")
    if n <= 0:
        raise ValidationError(f"{field_name} must be a positive integer")
    return n


def parse_id_list(*values: Any) -> list[int]:
    """Collect unique positive ints from ``?id=`` / ``?ids=1,2`` style values.

    Non-numeric and non-positive parts are ignored; order is preserved.
    """
    out: list[int] = []
    for raw in values:
        if raw is None:
            continue
        parts: Iterable[Any] = raw if isinstance(raw, (list, tuple)) else str(raw).split(",")
        for part in parts:
            try:
                n = int(str(part).strip())
            except ValueError:
                continue
            if n > 0 and n not in out:
                out.append(n)
    return out


def clamp_int(value: Any, *, default: int, lo: int, hi: Optional[int] = None) -> int:
    try:
        n = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    n = max(lo, n)
    if hi is not None:
        n = min(hi, n)
    return n
