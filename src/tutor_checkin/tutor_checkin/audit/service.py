from __future__ import annotations

import logging
from typing import Any, Optional

from .repository import AuditRepository

logger = logging.getLogger(__name__)

# Never persist secrets into the audit trail.
_REDACTED_KEYS = {"password", "password_hash", "passwordHash", "token"}


class AuditService:
    """Admin audit trail (who changed what)."""

    def __init__(self, audit: AuditRepository):
        self._audit = audit

    def log(
        self,
        actor_id: Optional[int],
        action: str,
        entity: str,
        entity_id: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        clean = {k: v for k, v in (details or {}).items() if k not in _REDACTED_KEYS} if details else None
        try:
            self._audit.add(actor_id=actor_id, action=action, entity=entity, entity_id=entity_id, details=clean)
        except Exception:
            # audit rows are best effort
            logger.exception("Failed to write audit entry %s %s#%s", action, entity, entity_id)
