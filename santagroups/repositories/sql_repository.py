from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence

from cryptography.fernet import Fernet
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Group as GroupRow, GroupAssignment, GroupParticipant
from ..records import Assignment, Group, Participant
from ..security import open_receiver, seal_receiver
from ..services.identifiers import is_group_code, normalize_code
from .base import EDITABLE_FIELDS, GroupRepository

log = logging.getLogger(__name__)


def _to_db_time(value: str | None) -> datetime | None:
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _from_db_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat()


class SqlGroupRepository(GroupRepository):
    """Relational store backed by the Flask-SQLAlchemy session. Needs an app context."""

    def __init__(self, fernet: Fernet):
        self.fernet = fernet

    def _to_record(self, row: GroupRow) -> Group:
        return Group(
            id=row.id,
            code=row.code,
            group_name=row.group_name,
            organizer_name=row.organizer_name,
            organizer_email=row.organizer_email,
            created_at=_from_db_time(row.created_at) or "",
            updated_at=_from_db_time(row.updated_at),
            participants=[Participant(id=p.id, name=p.name or "", email=p.email or "") for p in row.participants],
            assignments=[
                Assignment(giver_id=a.giver_id, receiver_id=open_receiver(self.fernet, a.receiver_ciphertext))
                for a in row.assignments
            ],
        )

    def _assignment_rows(self, group_id: str, assignments: Sequence[Assignment]) -> list[GroupAssignment]:
        return [
            GroupAssignment(
                group_id=group_id,
                position=i,
                giver_id=a.giver_id,
                receiver_ciphertext=seal_receiver(self.fernet, a.receiver_id),
            )
            for i, a in enumerate(assignments)
        ]

    def _require(self, group_id: str) -> GroupRow:
        row = db.session.get(GroupRow, group_id)
        if row is None:
            raise LookupError(f"No group with id {group_id!r}")
        return row

    def _commit(self) -> None:
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def create(self, group: Group) -> Group:
        row = GroupRow(
            id=group.id,
            code=group.code,
            group_name=group.group_name,
            organizer_name=group.organizer_name,
            organizer_email=group.organizer_email,
            created_at=_to_db_time(group.created_at),
            updated_at=_to_db_time(group.updated_at),
        )
        row.participants = [
            GroupParticipant(id=p.id, group_id=group.id, position=i, name=p.name, email=p.email)
            for i, p in enumerate(group.participants)
        ]
        db.session.add(row)
        # participants must exist before assignments reference them
        try:
            db.session.flush()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        row.assignments = self._assignment_rows(group.id, group.assignments)
        self._commit()
        return group

    def get(self, id_or_code: str) -> Group | None:
        if is_group_code(id_or_code):
            row = GroupRow.query.filter_by(code=normalize_code(id_or_code)).first()
        else:
            row = db.session.get(GroupRow, id_or_code)
        return self._to_record(row) if row else None

    def list(self) -> list[Group]:
        rows = GroupRow.query.order_by(GroupRow.created_at.asc()).all()
        return [self._to_record(r) for r in rows]

    def existing_codes(self) -> set[str]:
        return {code for (code,) in db.session.query(GroupRow.code).all()}

    def update_details(self, group_id: str, updated_at: str, **fields: str) -> Group:
        row = self._require(group_id)
        for name, value in fields.items():
            if name not in EDITABLE_FIELDS:
                raise ValueError(f"Field {name!r} is not editable")
            setattr(row, name, value)
        row.updated_at = _to_db_time(updated_at)
        self._commit()
        return self._to_record(row)

    def replace_roster(
        self,
        group_id: str,
        participants: Sequence[Participant],
        assignments: Sequence[Assignment],
        updated_at: str,
    ) -> Group:
        row = self._require(group_id)
        try:
            # drop the old assignment set first, it references the old roster
            row.assignments = []
            db.session.flush()

            current = {p.id: p for p in row.participants}
            kept = []
            for i, p in enumerate(participants):
                existing = current.pop(p.id, None)
                if existing is None:
                    existing = GroupParticipant(id=p.id, group_id=group_id)
                existing.position = i
                existing.name = p.name
                existing.email = p.email
                kept.append(existing)
            row.participants = kept
            db.session.flush()

            row.assignments = self._assignment_rows(group_id, assignments)
            row.updated_at = _to_db_time(updated_at)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return self._to_record(row)

    def replace_assignments(self, group_id: str, assignments: Sequence[Assignment], updated_at: str) -> Group:
        row = self._require(group_id)
        try:
            row.assignments = []
            db.session.flush()
            row.assignments = self._assignment_rows(group_id, assignments)
            row.updated_at = _to_db_time(updated_at)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return self._to_record(row)

    def delete(self, group_id: str) -> bool:
        row = db.session.get(GroupRow, group_id)
        if row is None:
            return False
        try:
            # assignments reference participants; remove them first
            row.assignments = []
            db.session.flush()
            db.session.delete(row)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise
        return True
