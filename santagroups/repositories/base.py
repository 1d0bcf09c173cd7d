from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from ..records import Assignment, Group, Participant


class GroupRepository(ABC):
    """
    Storage for groups together with their participants and assignments.

    Every write replaces whole collections: participants and assignments are
    never patched one row at a time, and a failed write leaves the previous
    state untouched.
    """

    @abstractmethod
    def create(self, group: Group) -> Group:
        ...

    @abstractmethod
    def get(self, id_or_code: str) -> Group | None:
        """Look a group up by internal id or by its (case-insensitive) code."""

    @abstractmethod
    def list(self) -> list[Group]:
        ...

    @abstractmethod
    def existing_codes(self) -> set[str]:
        ...

    @abstractmethod
    def update_details(self, group_id: str, updated_at: str, **fields: str) -> Group:
        ...

    @abstractmethod
    def replace_roster(
        self,
        group_id: str,
        participants: Sequence[Participant],
        assignments: Sequence[Assignment],
        updated_at: str,
    ) -> Group:
        ...

    @abstractmethod
    def replace_assignments(self, group_id: str, assignments: Sequence[Assignment], updated_at: str) -> Group:
        ...

    @abstractmethod
    def delete(self, group_id: str) -> bool:
        ...


EDITABLE_FIELDS = ("group_name", "organizer_name", "organizer_email")
