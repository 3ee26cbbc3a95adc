from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Sequence

from werkzeug.security import check_password_hash, generate_password_hash

from ..audit.service import AuditService
from ..common.datetime_utils import now_utc
from ..common.validators import clamp_int, is_email
from ..core.constants import PASSWORD_MIN_LENGTH
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, ConflictError, NotFoundError, ValidationError
from .model import TokenClaims, User
from .repository import UserRepository
from .tokens import TokenService

logger = logging.getLogger(__name__)

_PASSWORD_RULE = f"Password must be at least {PASSWORD_MIN_LENGTH} characters"


def normalize_role(value: Any) -> Optional[Role]:
    """Case-insensitive ADMIN / STAFF, None when anything else."""
    try:
        return Role(str(value or "").strip().upper())
    except ValueError:
        return None


def _check_password(password_hash: str, password: str) -> bool:
    try:
        return check_password_hash(password_hash, password)
    except (TypeError, ValueError):
        # e.g. placeholder hashes like 'CHANGE_ME' or corrupted values
        return False


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str


class AuthService:
    """Use cases: login, me, update own account, refresh."""

    def __init__(self, users: UserRepository, tokens: TokenService):
        self._users = users
        self._tokens = tokens

    def login(self, email: Any, password: Any, *, remember: bool = False, now: Optional[datetime] = None) -> AuthResult:
        if not email or not password:
            raise ValidationError("Email and password required")

        user = self._users.get_by_email(str(email).strip())
        if not user or not user.active:
            raise AuthenticationError("Invalid credentials")
        if not _check_password(user.password_hash, str(password)):
            raise AuthenticationError("Invalid credentials")

        token = self._tokens.issue(user, remember=remember)
        self._users.touch_last_login(user.id, at=now or now_utc())
        logger.info("User %s signed in", user.id)
        return AuthResult(user=user, token=token)

    def me(self, claims: TokenClaims) -> User:
        user = self._users.get_by_id(claims.id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def update_me(
        self,
        claims: TokenClaims,
        *,
        email: Any = None,
        password: Any = None,
        now: Optional[datetime] = None,
    ) -> AuthResult:
        current = self.me(claims)

        wants_email = isinstance(email, str)
        wants_password = isinstance(password, str)
        if not wants_email and not wants_password:
            raise ValidationError("Nothing to update")

        fields: dict[str, Any] = {}
        if wants_email:
            e = email.strip()
            if not is_email(e):
                raise ValidationError("Invalid email format")
            if e.lower() != current.email.lower():
                if self._users.email_taken(e, exclude_id=current.id):
                    raise ConflictError("Email already in use")
                fields["email"] = e

        if wants_password:
            if len(password) < PASSWORD_MIN_LENGTH:
                raise ValidationError(_PASSWORD_RULE)
            fields["password_hash"] = generate_password_hash(password)

        updated = current
        if fields:
            updated = self._users.update_user(current.id, fields=fields, now=now or now_utc()) or current

        # Re-issue so the email claim stays in sync; keep the remember policy.
        return AuthResult(user=updated, token=self._tokens.issue(updated, remember=claims.remember))

    def refresh(self, claims: TokenClaims) -> AuthResult:
        user = self.me(claims)
        return AuthResult(user=user, token=self._tokens.issue(user, remember=claims.remember))


class UserService:
    """Use case: manage console accounts (admin)."""

    def __init__(self, users: UserRepository, audit: AuditService):
        self._users = users
        self._audit = audit

    def list_users(
        self,
        *,
        limit: Any = None,
        offset: Any = None,
        search: Any = "",
        role: Any = "",
        active: Any = "",
    ) -> Sequence[User]:
        role_filter = None
        if role:
            role_filter = normalize_role(role)
            if role_filter is None:
                raise ValidationError("Invalid role")

        active_filter = None
        if active in ("yes", "no"):
            active_filter = active == "yes"

        return self._users.list_users(
            limit=clamp_int(limit, default=100, lo=1, hi=500),
            offset=clamp_int(offset, default=0, lo=0),
            search=str(search or "").strip(),
            role=role_filter,
            active=active_filter,
        )

    def create_user(self, *, actor_id: Optional[int], email: Any, password: Any, role: Any, active: Any = True) -> User:
        if not is_email(email):
            raise ValidationError("Valid email required")
        if not password or len(str(password)) < PASSWORD_MIN_LENGTH:
            raise ValidationError(_PASSWORD_RULE)
        r = normalize_role(role)
        if r is None:
            raise ValidationError("role must be ADMIN or STAFF")

        email = str(email).strip()
        if self._users.email_taken(email):
            raise ConflictError("Email already exists")

        user = self._users.create_user(
            email=email,
            password_hash=generate_password_hash(str(password)),
            role=r,
            active=bool(active),
        )
        self._audit.log(actor_id, "USER_CREATE", "app_user", user.id, {
            "email": user.email,
            "role": user.role.value,
            "active": user.active,
        })
        return user

    def update_user(self, *, actor_id: Optional[int], user_id: int, changes: dict[str, Any], now: Optional[datetime] = None) -> User:
        fields: dict[str, Any] = {}

        if "email" in changes:
            email = changes["email"]
            if not is_email(email):
                raise ValidationError("Valid email required")
            fields["email"] = str(email).strip()

        if "role" in changes:
            r = normalize_role(changes["role"])
            if r is None:
                raise ValidationError("role must be ADMIN or STAFF")
            fields["role"] = r

        if "active" in changes:
            fields["active"] = bool(changes["active"])

        if "password" in changes:
            password = changes["password"]
            if not password or len(str(password)) < PASSWORD_MIN_LENGTH:
                raise ValidationError(_PASSWORD_RULE)
            fields["password_hash"] = generate_password_hash(str(password))

        if not fields:
            raise ValidationError("No updatable fields provided")

        if not self._users.get_by_id(user_id):
            raise NotFoundError("User not found")
        if "email" in fields and self._users.email_taken(fields["email"], exclude_id=user_id):
            raise ConflictError("Email already exists")

        updated = self._users.update_user(user_id, fields=fields, now=now or now_utc())
        if not updated:
            raise NotFoundError("User not found")

        self._audit.log(actor_id, "USER_UPDATE", "app_user", user_id, {"fields": sorted(changes.keys())})
        return updated

    def delete_user(self, *, actor_id: Optional[int], user_id: int) -> None:
        user = self._users.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")

        self._users.delete_by_id(user_id)
        self._audit.log(actor_id, "USER_DELETE", "app_user", user_id, {"email": user.email})
