"""
Learning: starting quiz attempts without double counting

Scenarios:
- After max_attempts successful starts no further attempt can start
- Unlimited (-1) never exhausts
- An ambiguous start is reconciled against server history instead of
  consuming a second attempt
- A start that never reached the server can simply be retried
- A server-side conflict refreshes the local count before surfacing
"""
from __future__ import annotations

import pytest

from coursework.learning.adapters.ports import AttemptConflict, AttemptOutcomeUnknown, NetworkError
from coursework.learning.domain import UNLIMITED_ATTEMPTS
from coursework.learning.usecases.attempts import AttemptController, attempt_idempotency_key, can_start

from conftest import make_assignment
from fakes import FakeBackend

pytestmark = pytest.mark.anyio("asyncio")

LEARNER = "learner-1"


def test_can_start_counts_prior_attempts():
    limited = make_assignment(max_attempts=2)
    assert can_start(limited, 0) is True
    assert can_start(limited, 1) is True
    assert can_start(limited, 2) is False
    assert can_start(make_assignment(max_attempts=UNLIMITED_ATTEMPTS), 1000) is True


def test_idempotency_key_shape():
    assert attempt_idempotency_key("a-1", LEARNER, 3) == "attempt:a-1:learner-1:3"


async def test_exhaustion_after_max_attempts():
    assignment = make_assignment(max_attempts=2)
    backend = FakeBackend([assignment])
    controller = AttemptController(backend)

    first = await controller.start_attempt(assignment, LEARNER)
    second = await controller.start_attempt(assignment, LEARNER)
    assert (first.attempt.ordinal, first.remaining) == (1, 1)
    assert (second.attempt.ordinal, second.remaining) == (2, 0)
    assert can_start(assignment, controller.known_attempts(assignment.id, LEARNER)) is False

    with pytest.raises(AttemptConflict):
        await controller.start_attempt(assignment, LEARNER)
    # Refused locally; the server never saw a third start.
    assert backend.start_keys == ["attempt:a-1:learner-1:1", "attempt:a-1:learner-1:2"]


async def test_unlimited_attempts_report_no_remaining_count():
    assignment = make_assignment(max_attempts=UNLIMITED_ATTEMPTS)
    controller = AttemptController(FakeBackend([assignment]))
    for _ in range(3):
        handle = await controller.start_attempt(assignment, LEARNER)
        assert handle.remaining is None
    assert len(controller.known_attempts(assignment.id, LEARNER)) == 3


async def test_ambiguous_start_that_was_recorded_is_reused():
    assignment = make_assignment(max_attempts=1)
    backend = FakeBackend([assignment])
    backend.start_failures.append((AttemptOutcomeUnknown("response lost", reached_server=None), True))
    controller = AttemptController(backend)

    with pytest.raises(AttemptOutcomeUnknown):
        await controller.start_attempt(assignment, LEARNER)
    assert controller.needs_reconcile(assignment.id, LEARNER) is True

    handle = await controller.start_attempt(assignment, LEARNER)
    assert handle.attempt.ordinal == 1
    assert handle.remaining == 0
    assert len(backend.attempts) == 1
    assert backend.start_keys == ["attempt:a-1:learner-1:1"]
    assert controller.needs_reconcile(assignment.id, LEARNER) is False


async def test_ambiguous_start_that_was_not_recorded_retries_same_ordinal():
    assignment = make_assignment(max_attempts=1)
    backend = FakeBackend([assignment])
    backend.start_failures.append((AttemptOutcomeUnknown("timeout", reached_server=None), False))
    controller = AttemptController(backend)

    with pytest.raises(AttemptOutcomeUnknown):
        await controller.start_attempt(assignment, LEARNER)
    handle = await controller.start_attempt(assignment, LEARNER)
    assert handle.attempt.ordinal == 1
    assert backend.start_keys == ["attempt:a-1:learner-1:1", "attempt:a-1:learner-1:1"]


async def test_start_that_never_reached_server_leaves_state_unchanged():
    assignment = make_assignment(max_attempts=1)
    backend = FakeBackend([assignment])
    backend.start_failures.append((NetworkError("refused", reached_server=False), False))
    controller = AttemptController(backend)

    with pytest.raises(NetworkError) as exc:
        await controller.start_attempt(assignment, LEARNER)
    assert exc.value.reached_server is False
    assert controller.needs_reconcile(assignment.id, LEARNER) is False
    assert controller.known_attempts(assignment.id, LEARNER) == []

    handle = await controller.start_attempt(assignment, LEARNER)
    assert handle.attempt.ordinal == 1


async def test_server_conflict_refreshes_history():
    assignment = make_assignment(max_attempts=3)
    backend = FakeBackend([assignment])
    backend.start_failures.append((AttemptConflict("max_attempts_reached"), False))
    controller = AttemptController(backend)

    with pytest.raises(AttemptConflict):
        await controller.start_attempt(assignment, LEARNER)
    # One read before the start, one after the conflict.
    assert backend.list_attempt_calls == 2
