from __future__ import annotations

import logging
import random
from typing import Sequence

from ..records import Assignment, Participant

log = logging.getLogger(__name__)

MAX_ATTEMPTS = 50

_system_random = random.SystemRandom()


class AssignmentError(RuntimeError):
    pass


class InsufficientParticipants(AssignmentError, ValueError):
    pass


class DerangementUnobtainable(AssignmentError):
    pass


def _shuffle(items: list, rng: random.Random) -> None:
    # Fisher-Yates: swap i with a uniform index in [0, i]
    for i in range(len(items) - 1, 0, -1):
        j = rng.randrange(i + 1)
        items[i], items[j] = items[j], items[i]


def compute_derangement(
    participants: Sequence[Participant],
    rng: random.Random | None = None,
    max_attempts: int = MAX_ATTEMPTS,
) -> list[Assignment]:
    """
    Pair every participant with a receiver so that nobody draws themselves.

    Givers keep the input order. Receivers are a uniformly shuffled copy of
    the list, redrawn until no position holds the giver's own id. Raises
    InsufficientParticipants for fewer than two participants and
    DerangementUnobtainable once max_attempts shuffles were all rejected.
    """
    if len(participants) < 2:
        raise InsufficientParticipants("At least 2 participants are required for assignments.")

    rng = rng or _system_random
    givers = list(participants)
    receivers = list(participants)

    for attempt in range(1, max_attempts + 1):
        _shuffle(receivers, rng)
        if all(g.id != r.id for g, r in zip(givers, receivers)):
            log.debug("derangement of %d participants found after %d attempt(s)", len(givers), attempt)
            return [Assignment(giver_id=g.id, receiver_id=r.id) for g, r in zip(givers, receivers)]

    raise DerangementUnobtainable("Could not generate a valid assignment. Try again.")
