from __future__ import annotations

from typing import Any, Optional, Protocol


class AuditRepository(Protocol):
    def add(
        self,
        *,
        actor_id: Optional[int],
        action: str,
        entity: str,
        entity_id: Optional[int],
        details: Optional[dict[str, Any]],
    ) -> int:
        raise NotImplementedError
