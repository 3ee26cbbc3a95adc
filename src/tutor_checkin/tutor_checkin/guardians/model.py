from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Guardian:
    """Parent/guardian who receives SMS notifications.

    ``relationship_type`` is one representative value from the student links
    (None when the guardian is not linked to anyone).
    """

    id: int
    first_name: str
    last_name: str
    phone_e164: Optional[str]
    relationship: str = "GUARDIAN"
    email: Optional[str] = None
    phone_raw: Optional[str] = None
    phone_valid: bool = True
    active: bool = True
    created_at: Optional[datetime] = None
    relationship_type: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
