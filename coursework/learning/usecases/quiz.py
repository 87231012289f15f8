from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Sequence

from coursework.learning.adapters.ports import LearningBackendProtocol, LearningClientError, ValidationError
from coursework.learning.domain import Submission
from coursework.learning.retry import DEFAULT_REFRESH_DELAYS
from coursework.learning.scoring import needs_refresh
from coursework.learning.settings import EffectiveQuizSettings
from coursework.learning.timer import QuizTimer
from coursework.learning.usecases.attempts import AttemptHandle
from coursework.learning.usecases.submissions import RefreshAfterScoreUseCase, RefreshResult

LOG = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def quiz_idempotency_key(attempt_id: str) -> str:
    return f"quiz:{attempt_id}"


@dataclass
class ActiveSubmissionContext:
    """Explicit handle for the learner's current in-flight work.

    Passed to the components that need it instead of living in a module
    global, so each view (and each test) owns its own context.
    """

    learner_id: str
    assignment_id: Optional[str] = None
    attempt_id: Optional[str] = None
    submission_id: Optional[str] = None

    def activate(self, *, assignment_id: str, attempt_id: Optional[str] = None) -> None:
        self.assignment_id = assignment_id
        self.attempt_id = attempt_id
        self.submission_id = None

    def clear(self) -> None:
        self.assignment_id = None
        self.attempt_id = None
        self.submission_id = None


class QuizSession:
    """One timed (or untimed) quiz attempt from start to accepted submission.

    Intent:
        Access to quiz content requires an `AttemptHandle`, i.e. an attempt the
        server already recorded. The session collects answers, owns the timer
        for its lifetime and converges manual and automatic submission onto a
        single accepted result.

    Behavior:
        - `submit()` is serialized by a lock; the first accepted submission is
          cached and returned to every later caller.
        - The request carries `quiz:{attempt_id}` as Idempotency-Key so a
          retried or duplicated call is deduplicated server-side too.
        - Leaving `async with` tears the timer down without auto-submitting
          and clears the active context unless a result was accepted.
        - Auto-submit failures (including a vanished attempt or a malformed
          response) land in `auto_submit_error` instead of the timer task.
    """

    def __init__(
        self,
        backend: LearningBackendProtocol,
        handle: AttemptHandle,
        *,
        settings: Optional[EffectiveQuizSettings] = None,
        context: Optional[ActiveSubmissionContext] = None,
        tick_seconds: float = 1.0,
        clock: Callable[[], datetime] = _utcnow,
        refresh_delays: Sequence[float] = DEFAULT_REFRESH_DELAYS,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self._backend = backend
        self._handle = handle
        self._context = context
        self._refresh = RefreshAfterScoreUseCase(backend, delays=refresh_delays, sleep=sleep)
        time_limit = settings.time_limit_minutes if settings is not None else handle.assignment.time_limit_minutes
        self._timer = QuizTimer(
            time_limit,
            handle.attempt.started_at,
            self._auto_submit,
            tick_seconds=tick_seconds,
            clock=clock,
        )
        self._answers: dict[str, Any] = {}
        self._lock = asyncio.Lock()
        self._result: Optional[Submission] = None
        self.auto_submit_error: Optional[Exception] = None
        if context is not None:
            context.activate(assignment_id=handle.assignment.id, attempt_id=handle.attempt_id)

    @property
    def timer(self) -> QuizTimer:
        return self._timer

    @property
    def result(self) -> Optional[Submission]:
        return self._result

    @property
    def is_closed(self) -> bool:
        return self._result is not None

    def remaining_seconds(self) -> Optional[int]:
        return self._timer.remaining_seconds()

    def answer(self, question_id: str, value: Any) -> None:
        if self._result is not None:
            raise ValidationError("attempt_closed")
        if not question_id:
            raise ValidationError("missing_field", "question_id")
        self._answers[str(question_id)] = value

    def answers(self) -> dict[str, Any]:
        return dict(self._answers)

    async def submit(self, *, reason: str = "manual") -> Submission:
        async with self._lock:
            if self._result is not None:
                LOG.debug("learning.quiz.submit_deduplicated attempt=%s reason=%s", self._handle.attempt_id, reason)
                return self._result
            payload = [{"questionId": qid, "answer": value} for qid, value in self._answers.items()]
            result = await self._backend.submit_answers(
                self._handle.assignment.id,
                self._handle.attempt.learner_id,
                attempt_id=self._handle.attempt_id,
                answers=payload,
                idempotency_key=quiz_idempotency_key(self._handle.attempt_id),
            )
            self._result = result
            self._timer.cancel()
            if self._context is not None:
                self._context.submission_id = result.id
            LOG.info(
                "learning.quiz.submitted attempt=%s reason=%s answers=%s",
                self._handle.attempt_id,
                reason,
                len(payload),
            )
            return result

    async def _auto_submit(self) -> None:
        try:
            await self.submit(reason="timeout")
        except (LearningClientError, LookupError, ValueError, KeyError) as exc:
            # Surfaced to the UI through `auto_submit_error`; manual retry stays possible.
            self.auto_submit_error = exc
            LOG.error("learning.quiz.auto_submit_failed attempt=%s error=%s", self._handle.attempt_id, exc)

    async def refresh_after_submit(self) -> Optional[RefreshResult]:
        """Re-read submissions when the accepted result carries an AI score."""
        if self._result is None or not needs_refresh(self._result):
            return None
        return await self._refresh.execute(self._result)

    async def __aenter__(self) -> "QuizSession":
        self._timer.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._timer.stop()
        if self._context is not None and self._result is None:
            self._context.clear()


__all__ = ["ActiveSubmissionContext", "QuizSession", "quiz_idempotency_key"]
