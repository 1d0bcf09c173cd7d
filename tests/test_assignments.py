"""Tests for the derangement engine."""

import random
from collections import Counter

import pytest

from helpers import assert_derangement
from santagroups.records import Participant
from santagroups.services.assignments import (
    MAX_ATTEMPTS,
    AssignmentError,
    DerangementUnobtainable,
    InsufficientParticipants,
    compute_derangement,
)


def _people(n):
    return [Participant(id=f"p{i}", name=f"Person {i}") for i in range(n)]


class _IdentityRandom(random.Random):
    """Every Fisher-Yates swap is a no-op, so each shuffle returns the identity."""

    def __init__(self):
        super().__init__(0)
        self.calls = 0

    def randrange(self, *args, **kwargs):
        self.calls += 1
        return args[0] - 1


class _ExplodingRandom(random.Random):
    def randrange(self, *args, **kwargs):
        raise AssertionError("shuffle must not run")


def test_every_size_from_2_to_500_is_a_derangement():
    rng = random.Random(2024)
    for n in range(2, 501):
        people = _people(n)
        assert_derangement(people, compute_derangement(people, rng=rng))


def test_givers_keep_input_order():
    people = _people(6)
    result = compute_derangement(people, rng=random.Random(7))
    assert [a.giver_id for a in result] == [p.id for p in people]


def test_two_participants_always_swap():
    a, b = _people(2)
    for seed in range(200):
        result = compute_derangement([a, b], rng=random.Random(seed))
        assert [(x.giver_id, x.receiver_id) for x in result] == [(a.id, b.id), (b.id, a.id)]


def test_three_participants_use_both_derangements_evenly():
    people = _people(3)
    rng = random.Random(1234)
    seen = Counter(
        tuple(x.receiver_id for x in compute_derangement(people, rng=rng))
        for _ in range(3000)
    )
    assert set(seen) == {("p1", "p2", "p0"), ("p2", "p0", "p1")}
    for count in seen.values():
        assert 1350 < count < 1650


def test_repeated_calls_are_independent_and_valid():
    people = _people(8)
    rng = random.Random(99)
    first = compute_derangement(people, rng=rng)
    second = compute_derangement(people, rng=rng)
    assert_derangement(people, first)
    assert_derangement(people, second)


def test_default_random_source_works():
    people = _people(5)
    assert_derangement(people, compute_derangement(people))


@pytest.mark.parametrize("n", [0, 1])
def test_too_few_participants_fail_before_shuffling(n):
    with pytest.raises(InsufficientParticipants):
        compute_derangement(_people(n), rng=_ExplodingRandom())


def test_insufficient_participants_is_a_value_error():
    with pytest.raises(ValueError):
        compute_derangement(_people(1))


def test_exhausted_retry_budget_raises():
    rng = _IdentityRandom()
    with pytest.raises(DerangementUnobtainable):
        compute_derangement(_people(4), rng=rng)
    # one draw per index 3..1, per attempt
    assert rng.calls == MAX_ATTEMPTS * 3


def test_custom_retry_budget():
    rng = _IdentityRandom()
    with pytest.raises(AssignmentError):
        compute_derangement(_people(3), rng=rng, max_attempts=2)
    assert rng.calls == 2 * 2


def test_two_participants_never_exhaust_budget():
    people = _people(2)
    rng = random.Random(5)
    for _ in range(1000):
        assert_derangement(people, compute_derangement(people, rng=rng))


def test_end_to_end_four_people():
    people = [Participant(id=x, name=x) for x in "ABCD"]
    result = compute_derangement(people)
    assert {a.giver_id for a in result} == set("ABCD")
    assert {a.receiver_id for a in result} == set("ABCD")
    assert all(a.giver_id != a.receiver_id for a in result)


def test_input_list_is_not_modified():
    people = _people(5)
    before = list(people)
    compute_derangement(people, rng=random.Random(3))
    assert people == before
