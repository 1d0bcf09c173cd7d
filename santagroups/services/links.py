from __future__ import annotations

from urllib.parse import quote

from ..records import Group


def organizer_url(base_url: str, group: Group) -> str:
    return f"{base_url.rstrip('/')}/groups/{quote(group.code)}"


def participant_url(base_url: str, group: Group, participant_id: str) -> str:
    return f"{organizer_url(base_url, group)}/participant/{quote(participant_id)}"


def participant_urls(base_url: str, group: Group) -> list[dict]:
    return [
        {"participantId": p.id, "name": p.name, "url": participant_url(base_url, group, p.id)}
        for p in group.participants
    ]
