from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Staff/admin account that can sign in to the console."""

    id: int
    email: str
    password_hash: str
    role: Role
    active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class TokenClaims:
    """Decoded bearer token payload."""

    id: int
    email: str
    role: Role
    remember: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
