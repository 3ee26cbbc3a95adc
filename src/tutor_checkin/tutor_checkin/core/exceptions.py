from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when credentials or bearer tokens are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when the addressed record does not exist."""


class ConflictError(DomainError):
    """Raised when the request conflicts with existing state.

    ``payload`` is merged into the JSON error body so callers can show
    details (e.g. when the previous check-in happened).
    """

    def __init__(self, message: str, *, payload: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.payload = dict(payload or {})


class ExternalServiceError(DomainError):
    """Raised when a third-party API (SMS gateway, GitHub) fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details
