from santagroups.records import Group


def assert_derangement(participants, assignments):
    ids = [p.id for p in participants]
    assert len(assignments) == len(ids)
    assert sorted(a.giver_id for a in assignments) == sorted(ids)
    assert sorted(a.receiver_id for a in assignments) == sorted(ids)
    assert all(a.giver_id != a.receiver_id for a in assignments)


def assert_group_derangement(group: Group):
    assert_derangement(group.participants, group.assignments)
