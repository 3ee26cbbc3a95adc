from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence

from ..students.model import Student
from .model import Guardian


class GuardianRepository(Protocol):
    def get_by_id(self, guardian_id: int) -> Optional[Guardian]:
        raise NotImplementedError

    def list_for_student(self, student_id: int) -> Sequence[Guardian]:
        raise NotImplementedError

    def list_notifiable_for_student(self, student_id: int) -> Sequence[Guardian]:
        """Linked guardians that are active and have a valid phone."""
        raise NotImplementedError

    def list_guardians(
        self,
        *,
        search: str = "",
        relationship: str = "",
        active: Optional[bool] = None,
        phone_valid: Optional[bool] = None,
        ids: Sequence[int] = (),
        limit: int = 200,
        offset: int = 0,
    ) -> Sequence[Guardian]:
        raise NotImplementedError

    def create_guardian(
        self,
        *,
        first_name: str,
        last_name: str,
        phone_e164: str,
        phone_raw: Optional[str] = None,
        relationship: str = "GUARDIAN",
        email: Optional[str] = None,
    ) -> Guardian:
        raise NotImplementedError

    def update_guardian(
        self,
        guardian_id: int,
        *,
        fields: dict[str, Any],
        link_relationship: Optional[str] = None,
        update_links: bool = False,
    ) -> Optional[Guardian]:
        """Apply ``fields`` and, when ``update_links``, write ``link_relationship``
        to every student link of this guardian. Returns None when not found."""
        raise NotImplementedError

    def delete_guardian(self, guardian_id: int) -> bool:
        raise NotImplementedError

    def students_for_guardian(self, guardian_id: int) -> Sequence[Student]:
        raise NotImplementedError

    def students_by_guardian_ids(self, guardian_ids: Sequence[int]) -> dict[int, list[Student]]:
        raise NotImplementedError
