from __future__ import annotations

from dataclasses import dataclass, field, asdict


@dataclass(frozen=True)
class Participant:
    id: str
    name: str = ""
    email: str = ""

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Assignment:
    giver_id: str
    receiver_id: str

    def to_dict(self) -> dict:
        return {"giverId": self.giver_id, "receiverId": self.receiver_id}


@dataclass
class Group:
    id: str
    code: str
    group_name: str
    organizer_name: str
    organizer_email: str
    created_at: str
    participants: list[Participant] = field(default_factory=list)
    assignments: list[Assignment] = field(default_factory=list)
    updated_at: str | None = None

    def participant(self, participant_id: str) -> Participant | None:
        for p in self.participants:
            if p.id == participant_id:
                return p
        return None

    def assignment_for(self, giver_id: str) -> Assignment | None:
        for a in self.assignments:
            if a.giver_id == giver_id:
                return a
        return None

    def summary(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "groupName": self.group_name,
            "organizerName": self.organizer_name,
            "organizerEmail": self.organizer_email,
            "createdAt": self.created_at,
        }
