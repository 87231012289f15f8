from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

from coursework.learning.adapters.ports import (
    AttemptConflict,
    AttemptOutcomeUnknown,
    LearningBackendProtocol,
)
from coursework.learning.domain import Assignment, Attempt

LOG = logging.getLogger(__name__)


def can_start(assignment: Assignment, prior_attempts: Union[int, Sequence[Attempt]]) -> bool:
    """Return True while another attempt may be started.

    Overdue assignments are not blocked here; the due date is a UI warning.
    """
    count = prior_attempts if isinstance(prior_attempts, int) else len(prior_attempts)
    if assignment.has_unlimited_attempts:
        return True
    return count < assignment.max_attempts


def attempt_idempotency_key(assignment_id: str, learner_id: str, ordinal: int) -> str:
    return f"attempt:{assignment_id}:{learner_id}:{ordinal}"


@dataclass(frozen=True)
class AttemptHandle:
    attempt: Attempt
    assignment: Assignment
    remaining: Optional[int]  # None means unlimited

    @property
    def attempt_id(self) -> str:
        return self.attempt.id


class AttemptController:
    """Start quiz attempts without ever double-counting one.

    Behavior:
        - Every start re-reads attempt history from the server; the local view
          is only a cache of the last read.
        - A start whose outcome is unknown (request may have been recorded)
          is remembered. The next start re-reads history first and returns the
          recorded attempt instead of consuming another one.
        - A start that provably never reached the server leaves everything
          unchanged and may be retried directly.
    """

    def __init__(self, backend: LearningBackendProtocol) -> None:
        self._backend = backend
        self._history: dict[tuple[str, str], list[Attempt]] = {}
        self._unconfirmed: dict[tuple[str, str], int] = {}

    def known_attempts(self, assignment_id: str, learner_id: str) -> list[Attempt]:
        return list(self._history.get((assignment_id, learner_id), []))

    def needs_reconcile(self, assignment_id: str, learner_id: str) -> bool:
        return (assignment_id, learner_id) in self._unconfirmed

    async def refresh(self, assignment_id: str, learner_id: str) -> list[Attempt]:
        attempts = await self._backend.list_attempts(assignment_id, learner_id)
        attempts = sorted(attempts, key=lambda a: (a.ordinal, a.started_at))
        self._history[(assignment_id, learner_id)] = attempts
        return list(attempts)

    def _remaining(self, assignment: Assignment, used: int) -> Optional[int]:
        if assignment.has_unlimited_attempts:
            return None
        return max(0, assignment.max_attempts - used)

    async def start_attempt(self, assignment: Assignment, learner_id: str) -> AttemptHandle:
        key = (assignment.id, learner_id)
        attempts = await self.refresh(assignment.id, learner_id)

        pending_ordinal = self._unconfirmed.pop(key, None)
        if pending_ordinal is not None:
            recorded = [a for a in attempts if a.ordinal >= pending_ordinal]
            if recorded:
                LOG.info(
                    "learning.attempt.reconciled assignment=%s ordinal=%s",
                    assignment.id,
                    recorded[0].ordinal,
                )
                return AttemptHandle(
                    attempt=recorded[0],
                    assignment=assignment,
                    remaining=self._remaining(assignment, len(attempts)),
                )

        if not can_start(assignment, attempts):
            LOG.info("learning.attempt.exhausted assignment=%s used=%s", assignment.id, len(attempts))
            raise AttemptConflict("max_attempts_reached")

        ordinal = len(attempts) + 1
        try:
            attempt = await self._backend.start_attempt(
                assignment.id,
                learner_id,
                idempotency_key=attempt_idempotency_key(assignment.id, learner_id, ordinal),
            )
        except AttemptConflict:
            # Server is authoritative; resync the count before surfacing.
            await self.refresh(assignment.id, learner_id)
            raise
        except AttemptOutcomeUnknown:
            self._unconfirmed[key] = ordinal
            LOG.warning("learning.attempt.outcome_unknown assignment=%s ordinal=%s", assignment.id, ordinal)
            raise

        self._history[key] = attempts + [attempt]
        LOG.info("learning.attempt.started assignment=%s ordinal=%s", assignment.id, attempt.ordinal)
        return AttemptHandle(
            attempt=attempt,
            assignment=assignment,
            remaining=self._remaining(assignment, len(attempts) + 1),
        )


__all__ = ["can_start", "attempt_idempotency_key", "AttemptHandle", "AttemptController"]
