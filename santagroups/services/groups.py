from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from ..records import Group, Participant
from ..repositories.base import EDITABLE_FIELDS, GroupRepository
from .assignments import MAX_ATTEMPTS, compute_derangement
from .identifiers import generate_group_code, new_id

log = logging.getLogger(__name__)

MIN_PARTICIPANTS = 2


class GroupError(Exception):
    status_code = 400


class GroupValidationError(GroupError):
    pass


class GroupNotFound(GroupError):
    status_code = 404


class ParticipantNotFound(GroupError):
    status_code = 404


class AssignmentMissing(GroupError):
    status_code = 500


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def parse_participant_lines(text: str) -> list[dict[str, str]]:
    """
    Parse the organizer's textarea: one participant per line as "name, email".
    Either part may be left out; lines with neither are skipped.
    """
    out = []
    for line in (text or "").splitlines():
        line = line.strip()
        if not line:
            continue
        name, _, email = line.partition(",")
        name = name.strip()
        email = email.split(",")[0].strip()
        if name or email:
            out.append({"name": name, "email": email})
    return out


def _validate_details(fields: Mapping[str, Any], required: Iterable[str]) -> dict[str, str]:
    cleaned = {}
    for name in required:
        value = _clean(fields.get(name))
        if not value:
            raise GroupValidationError(f"{name.replace('_', ' ').capitalize()} is required.")
        cleaned[name] = value
    return cleaned


def _build_roster(entries: Any, known_ids: Iterable[str] = ()) -> list[Participant]:
    if not isinstance(entries, list):
        raise GroupValidationError("Participants must be a list.")
    if len(entries) < MIN_PARTICIPANTS:
        raise GroupValidationError(f"At least {MIN_PARTICIPANTS} participants are required.")

    known = set(known_ids)
    used: set[str] = set()
    roster = []
    for i, entry in enumerate(entries, start=1):
        if not isinstance(entry, Mapping):
            raise GroupValidationError(f"Participant #{i} is invalid.")
        # entries carrying an id we already know keep it (and their link)
        pid = _clean(entry.get("id"))
        if not pid or pid not in known or pid in used:
            pid = new_id()
        used.add(pid)
        roster.append(Participant(id=pid, name=_clean(entry.get("name")), email=_clean(entry.get("email"))))
    return roster


class GroupService:
    """Group operations on top of a GroupRepository and the assignment engine."""

    def __init__(
        self,
        repository: GroupRepository,
        max_attempts: int = MAX_ATTEMPTS,
        rng: random.Random | None = None,
    ):
        self.repository = repository
        self.max_attempts = max_attempts
        self.rng = rng

    def _draw(self, participants: list[Participant]):
        return compute_derangement(participants, rng=self.rng, max_attempts=self.max_attempts)

    def create_group(
        self,
        group_name: Any,
        organizer_name: Any,
        organizer_email: Any,
        participants: Any,
    ) -> Group:
        details = _validate_details(
            {"group_name": group_name, "organizer_name": organizer_name, "organizer_email": organizer_email},
            EDITABLE_FIELDS,
        )
        roster = _build_roster(participants)
        assignments = self._draw(roster)

        group = Group(
            id=new_id(),
            code=generate_group_code(self.repository.existing_codes()),
            created_at=_now(),
            participants=roster,
            assignments=assignments,
            **details,
        )
        self.repository.create(group)
        log.info("Created group %s with %d participants", group.code, len(roster))
        return group

    def list_groups(self) -> list[Group]:
        return self.repository.list()

    def get_group(self, id_or_code: str) -> Group:
        group = self.repository.get(id_or_code)
        if group is None:
            raise GroupNotFound("Group not found.")
        return group

    def update_group(self, id_or_code: str, **fields: Any) -> Group:
        group = self.get_group(id_or_code)
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise GroupValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}.")
        cleaned = _validate_details(fields, [f for f in EDITABLE_FIELDS if f in fields])
        if not cleaned:
            return group
        updated = self.repository.update_details(group.id, updated_at=_now(), **cleaned)
        log.info("Updated details of group %s: %s", group.code, ", ".join(sorted(cleaned)))
        return updated

    def replace_participants(self, id_or_code: str, participants: Any) -> Group:
        group = self.get_group(id_or_code)
        roster = _build_roster(participants, known_ids=(p.id for p in group.participants))
        assignments = self._draw(roster)
        updated = self.repository.replace_roster(group.id, roster, assignments, updated_at=_now())
        log.info("Replaced participants of group %s (%d participants)", group.code, len(roster))
        return updated

    def regenerate_assignments(self, id_or_code: str) -> Group:
        group = self.get_group(id_or_code)
        if len(group.participants) < MIN_PARTICIPANTS:
            raise GroupValidationError("At least 2 participants are required to regenerate assignments.")
        assignments = self._draw(group.participants)
        updated = self.repository.replace_assignments(group.id, assignments, updated_at=_now())
        log.info("Regenerated assignments for group %s", group.code)
        return updated

    def delete_group(self, id_or_code: str) -> None:
        group = self.get_group(id_or_code)
        self.repository.delete(group.id)
        log.info("Deleted group %s", group.code)


def receiver_for(group: Group, participant_id: str) -> tuple[Participant, Participant]:
    """Returns (giver, receiver) for the participant's reveal page."""
    giver = group.participant(participant_id)
    if giver is None:
        raise ParticipantNotFound("Participant not found in this group.")

    assignment = group.assignment_for(participant_id)
    if assignment is None:
        raise AssignmentMissing("Assignment not found for this participant.")

    receiver = group.participant(assignment.receiver_id)
    if receiver is None:
        raise AssignmentMissing("Assigned person not found.")
    return giver, receiver
