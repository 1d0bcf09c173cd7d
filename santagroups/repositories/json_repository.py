from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Sequence

from cryptography.fernet import Fernet

from ..records import Assignment, Group, Participant
from ..security import open_receiver, seal_receiver
from ..services.identifiers import generate_group_code, is_group_code, normalize_code
from .base import EDITABLE_FIELDS, GroupRepository
from .json_store import atomic_write_json

log = logging.getLogger(__name__)

_JSON_KEYS = {
    "group_name": "groupName",
    "organizer_name": "organizerName",
    "organizer_email": "organizerEmail",
}


class JsonGroupRepository(GroupRepository):
    """
    Flat-file store: a single JSON object mapping group id -> group.

    All reads and writes go through one lock, and every write replaces the
    file atomically.
    """

    def __init__(self, path: Path, fernet: Fernet):
        self.path = Path(path)
        self.fernet = fernet
        self._lock = threading.RLock()
        self._ensure_codes()

    # --- file access -------------------------------------------------------

    def _load(self) -> dict[str, dict]:
        if not self.path.exists():
            return {}
        try:
            raw = self.path.read_text(encoding="utf-8")
            if not raw.strip():
                return {}
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as exc:
            log.error("Error loading groups from %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, groups: dict[str, dict]) -> None:
        atomic_write_json(self.path, groups)

    def _ensure_codes(self) -> None:
        with self._lock:
            groups = self._load()
            existing = {g["code"] for g in groups.values() if g.get("code")}
            changed = False
            for g in groups.values():
                if not g.get("code"):
                    g["code"] = generate_group_code(existing)
                    existing.add(g["code"])
                    changed = True
            if changed:
                log.info("Assigned codes to existing groups on load.")
                self._save(groups)

    # --- (de)serialisation -------------------------------------------------

    def _dump_assignments(self, assignments: Sequence[Assignment]) -> list[dict]:
        return [
            {"giverId": a.giver_id, "receiverToken": seal_receiver(self.fernet, a.receiver_id)}
            for a in assignments
        ]

    def _to_record(self, raw: dict) -> Group:
        assignments = []
        for a in raw.get("assignments") or []:
            if "receiverToken" in a:
                receiver_id = open_receiver(self.fernet, a["receiverToken"])
            else:
                # files written before sealing carry the plain id
                receiver_id = a["receiverId"]
            assignments.append(Assignment(giver_id=a["giverId"], receiver_id=receiver_id))

        return Group(
            id=raw["id"],
            code=raw["code"],
            group_name=raw.get("groupName") or "",
            organizer_name=raw.get("organizerName") or "",
            organizer_email=raw.get("organizerEmail") or "",
            created_at=raw.get("createdAt") or "",
            updated_at=raw.get("updatedAt"),
            participants=[
                Participant(id=p["id"], name=p.get("name") or "", email=p.get("email") or "")
                for p in raw.get("participants") or []
            ],
            assignments=assignments,
        )

    def _to_raw(self, group: Group) -> dict:
        return {
            "id": group.id,
            "code": group.code,
            "groupName": group.group_name,
            "organizerName": group.organizer_name,
            "organizerEmail": group.organizer_email,
            "participants": [p.to_dict() for p in group.participants],
            "assignments": self._dump_assignments(group.assignments),
            "createdAt": group.created_at,
            "updatedAt": group.updated_at,
        }

    @staticmethod
    def _find(groups: dict[str, dict], id_or_code: str) -> dict | None:
        if not is_group_code(id_or_code):
            return groups.get(id_or_code)
        code = normalize_code(id_or_code)
        for g in groups.values():
            if g.get("code") == code:
                return g
        return None

    def _require(self, groups: dict[str, dict], group_id: str) -> dict:
        raw = groups.get(group_id)
        if raw is None:
            raise LookupError(f"No group with id {group_id!r}")
        return raw

    # --- GroupRepository ---------------------------------------------------

    def create(self, group: Group) -> Group:
        with self._lock:
            groups = self._load()
            if group.id in groups:
                raise ValueError(f"Group {group.id!r} already exists")
            groups[group.id] = self._to_raw(group)
            self._save(groups)
        return group

    def get(self, id_or_code: str) -> Group | None:
        with self._lock:
            raw = self._find(self._load(), id_or_code)
        return self._to_record(raw) if raw else None

    def list(self) -> list[Group]:
        with self._lock:
            groups = self._load()
        records = [self._to_record(g) for g in groups.values()]
        return sorted(records, key=lambda g: g.created_at)

    def existing_codes(self) -> set[str]:
        with self._lock:
            return {g["code"] for g in self._load().values() if g.get("code")}

    def update_details(self, group_id: str, updated_at: str, **fields: str) -> Group:
        with self._lock:
            groups = self._load()
            raw = self._require(groups, group_id)
            for name, value in fields.items():
                if name not in EDITABLE_FIELDS:
                    raise ValueError(f"Field {name!r} is not editable")
                raw[_JSON_KEYS[name]] = value
            raw["updatedAt"] = updated_at
            self._save(groups)
            return self._to_record(raw)

    def replace_roster(
        self,
        group_id: str,
        participants: Sequence[Participant],
        assignments: Sequence[Assignment],
        updated_at: str,
    ) -> Group:
        with self._lock:
            groups = self._load()
            raw = self._require(groups, group_id)
            raw["participants"] = [p.to_dict() for p in participants]
            raw["assignments"] = self._dump_assignments(assignments)
            raw["updatedAt"] = updated_at
            self._save(groups)
            return self._to_record(raw)

    def replace_assignments(self, group_id: str, assignments: Sequence[Assignment], updated_at: str) -> Group:
        with self._lock:
            groups = self._load()
            raw = self._require(groups, group_id)
            raw["assignments"] = self._dump_assignments(assignments)
            raw["updatedAt"] = updated_at
            self._save(groups)
            return self._to_record(raw)

    def delete(self, group_id: str) -> bool:
        with self._lock:
            groups = self._load()
            if groups.pop(group_id, None) is None:
                return False
            self._save(groups)
            return True
