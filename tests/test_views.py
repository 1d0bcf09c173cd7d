import re

import pytest

from santagroups import create_app


def _create(service, people):
    return service.create_group("Office", "Olga", "olga@example.com", people)


def test_landing_page(client):
    res = client.get("/")
    assert res.status_code == 200
    assert b"Create group" in res.data


def test_create_from_form(client, service):
    res = client.post("/", data={
        "group_name": "Office",
        "organizer_name": "Olga",
        "organizer_email": "olga@example.com",
        "participants": "Alice, alice@example.com\nBob\n\nCarol, carol@example.com",
    })
    assert res.status_code == 302

    groups = service.list_groups()
    assert len(groups) == 1
    assert res.headers["Location"].endswith(f"/groups/{groups[0].code}")
    assert [p.name for p in groups[0].participants] == ["Alice", "Bob", "Carol"]


def test_create_from_form_needs_two_participants(client, service):
    res = client.post("/", data={
        "group_name": "Office",
        "organizer_name": "Olga",
        "organizer_email": "olga@example.com",
        "participants": "Alice",
    })
    assert res.status_code == 400
    assert b"At least 2 participants are required." in res.data
    assert service.list_groups() == []


def test_organizer_page(client, service, people):
    group = _create(service, people)
    res = client.get(f"/groups/{group.code.lower()}")
    assert res.status_code == 200
    page = res.get_data(as_text=True)
    assert group.group_name in page
    for p in group.participants:
        assert f"http://santa.test/groups/{group.code}/participant/{p.id}" in page


def test_unknown_group_page(client):
    res = client.get("/groups/SANTA-ZZZZZZ")
    assert res.status_code == 404
    assert b"Group not found." in res.data


def test_reveal_page(client, service, people):
    group = _create(service, people)
    names = {p.id: p.name for p in group.participants}

    for p in group.participants:
        res = client.get(f"/groups/{group.code}/participant/{p.id}")
        assert res.status_code == 200
        page = res.get_data(as_text=True)
        assert f"Hi {p.name}!" in page
        receiver = re.search(r'<span class="receiver">(.*?)</span>', page).group(1)
        assert receiver == names[group.assignment_for(p.id).receiver_id]
        assert receiver != p.name


def test_reveal_fallback_names(client):
    res = client.post("/api/groups", json={
        "groupName": "Office",
        "organizerName": "Olga",
        "organizerEmail": "olga@example.com",
        "participants": [{"email": "a@example.com"}, {"email": "b@example.com"}],
    })
    assert res.status_code == 201
    data = res.get_json()

    pid = data["participantUrls"][0]["participantId"]
    page = client.get(f"/groups/{data['groupCode']}/participant/{pid}").get_data(as_text=True)
    assert "Hi You!" in page
    assert "Someone special" in page


def test_reveal_unknown_participant(client, service, people):
    group = _create(service, people)
    res = client.get(f"/groups/{group.code}/participant/nobody")
    assert res.status_code == 404
    assert b"Participant not found in this group." in res.data


def test_edit_details_form(client, service, people):
    group = _create(service, people)
    res = client.post(f"/groups/{group.code}/details", data={
        "group_name": "Family",
        "organizer_name": "Olga",
        "organizer_email": "olga@example.com",
    }, follow_redirects=True)
    assert res.status_code == 200
    assert b"Group details saved." in res.data
    assert service.get_group(group.id).group_name == "Family"


def test_replace_participants_form_keeps_unchanged_links(client, service, people):
    group = _create(service, people)
    alice = group.participants[0]

    res = client.post(f"/groups/{group.code}/participants", data={
        "participants": "Alice, alice@example.com\nErin, erin@example.com",
    }, follow_redirects=True)
    assert res.status_code == 200

    updated = service.get_group(group.id)
    assert [p.name for p in updated.participants] == ["Alice", "Erin"]
    assert updated.participants[0].id == alice.id
    assert updated.assignment_for(alice.id).receiver_id == updated.participants[1].id


def test_replace_participants_form_rejects_single(client, service, people):
    group = _create(service, people)
    res = client.post(f"/groups/{group.code}/participants", data={"participants": "Solo"}, follow_redirects=True)
    assert b"Failed to save participants" in res.data
    assert service.get_group(group.id) == group


def test_regenerate_form(client, service, people):
    group = _create(service, people)
    res = client.post(f"/groups/{group.code}/regenerate", follow_redirects=True)
    assert b"Assignments regenerated." in res.data


def test_notify_form(client, service, people, outbox):
    group = _create(service, people)
    res = client.post(f"/groups/{group.code}/notify", follow_redirects=True)
    assert b"3 sent, 1 skipped (no e-mail), 0 failed" in res.data
    assert len(outbox) == 3


def test_delete_form(client, service, people):
    group = _create(service, people)
    res = client.post(f"/groups/{group.code}/delete")
    assert res.status_code == 302
    assert service.list_groups() == []


def test_forms_require_csrf_token(tmp_path, people):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "SANTA_STORAGE": "json",
        "SANTA_DATA_FILE": str(tmp_path / "groups.json"),
    })
    client = app.test_client()

    res = client.post("/", data={"group_name": "Office"})
    assert res.status_code == 400

    # the JSON API is exempt
    res = client.post("/api/groups", json={
        "groupName": "Office",
        "organizerName": "Olga",
        "organizerEmail": "olga@example.com",
        "participants": people,
    })
    assert res.status_code == 201


def test_unknown_storage_backend():
    with pytest.raises(ValueError):
        create_app({"SQLALCHEMY_DATABASE_URI": "sqlite://", "SANTA_STORAGE": "redis"})
