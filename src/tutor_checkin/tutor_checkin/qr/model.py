from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class QrCode:
    """Opaque scan token owned by one student."""

    id: int
    student_id: int
    token: str
    active: bool = True
    created_by: Optional[int] = None
    created_at: Optional[datetime] = None
