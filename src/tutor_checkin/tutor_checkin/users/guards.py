from __future__ import annotations

from functools import wraps
from typing import Callable, Optional

from flask import g, request

from ..core.exceptions import AuthenticationError, AuthorizationError
from .model import TokenClaims
from .tokens import TokenService


def bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def current_user() -> TokenClaims:
    """Claims of the authenticated caller (set by ``login_required``)."""
    return g.current_user


def current_user_id() -> Optional[int]:
    claims = getattr(g, "current_user", None)
    return claims.id if claims else None


def build_guards(tokens: TokenService) -> tuple[Callable, Callable]:
    """Return ``(login_required, admin_required)`` view decorators.

    Failures raise domain errors; the app-level handlers turn them into
    401/403 JSON responses.
    """

    def login_required(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            token = bearer_token()
            if not token:
                raise AuthenticationError("Missing token")
            g.current_user = tokens.decode(token)
            return view(*args, **kwargs)

        return wrapper

    def admin_required(view):
        @wraps(view)
        @login_required
        def wrapper(*args, **kwargs):
            if not g.current_user.is_admin:
                raise AuthorizationError("Admin only")
            return view(*args, **kwargs)

        return wrapper

    return login_required, admin_required
