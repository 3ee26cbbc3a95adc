from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Callable, Optional

import jwt

from ..common.datetime_utils import now_utc
from ..core.enums import Role
from ..core.exceptions import AuthenticationError
from .model import TokenClaims, User

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def parse_duration(value: str | int | timedelta) -> timedelta:
    """'12h', '30d', '45m', '3600' -> timedelta."""
    if isinstance(value, timedelta):
        return value
    if isinstance(value, int):
        return timedelta(seconds=value)
    m = _DURATION_RE.match(str(value))
    if not m:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = m.groups()
    return timedelta(**{_UNITS[unit.lower()]: int(amount)})


class TokenService:
    """Signs and verifies HS256 bearer tokens.

    Claims: ``{id, email, role, remember, iat, exp}``. ``remember`` selects the
    long TTL and is carried over on refresh.
    """

    algorithm = "HS256"

    def __init__(
        self,
        secret: str,
        *,
        short_ttl: str | timedelta = "12h",
        long_ttl: str | timedelta = "30d",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self._secret = secret
        self._short_ttl = parse_duration(short_ttl)
        self._long_ttl = parse_duration(long_ttl)
        self._clock = clock or now_utc

    def issue(self, user: User, *, remember: bool = False) -> str:
        now = self._clock()
        ttl = self._long_ttl if remember else self._short_ttl
        payload = {
            "id": user.id,
            "email": user.email,
            "role": user.role.value,
            "remember": bool(remember),
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def decode(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token expired")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token")

        try:
            return TokenClaims(
                id=int(payload["id"]),
                email=str(payload.get("email", "")),
                role=Role(str(payload.get("role", ""))),
                remember=bool(payload.get("remember", False)),
            )
        except (KeyError, TypeError, ValueError):
            raise AuthenticationError("Invalid token")
