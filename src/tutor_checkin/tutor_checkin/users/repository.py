from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from ..core.enums import Role
from .model import User


class UserRepository(Protocol):
    """Services depend on this interface, not on a concrete database."""

    def get_by_id(self, user_id: int) -> Optional[User]:
        raise NotImplementedError

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError

    def email_taken(self, email: str, *, exclude_id: Optional[int] = None) -> bool:
        raise NotImplementedError

    def list_users(
        self,
        *,
        limit: int,
        offset: int,
        search: str = "",
        role: Optional[Role] = None,
        active: Optional[bool] = None,
    ) -> Sequence[User]:
        raise NotImplementedError

    def create_user(self, *, email: str, password_hash: str, role: Role, active: bool) -> User:
        raise NotImplementedError

    def update_user(self, user_id: int, *, fields: dict[str, Any], now: datetime) -> Optional[User]:
        raise NotImplementedError

    def delete_by_id(self, user_id: int) -> bool:
        raise NotImplementedError

    def touch_last_login(self, user_id: int, *, at: datetime) -> None:
        raise NotImplementedError
