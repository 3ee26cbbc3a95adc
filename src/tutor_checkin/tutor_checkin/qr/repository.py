from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..students.model import Student
from .model import QrCode


class QrCodeRepository(Protocol):
    def get_active_for_student(self, student_id: int) -> Optional[QrCode]:
        raise NotImplementedError

    def find_active_by_token(self, token: str) -> Optional[QrCode]:
        raise NotImplementedError

    def create(self, *, student_id: int, token: str, created_by: Optional[int]) -> QrCode:
        raise NotImplementedError

    def students_without_active_token(self) -> Sequence[Student]:
        """ACTIVE students that have no active token yet."""
        raise NotImplementedError

    def list_active(self) -> Sequence[QrCode]:
        raise NotImplementedError
