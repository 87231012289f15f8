"""
Loading the question-set document of a quiz assignment.

Intent:
    Quiz questions and question-level settings live in a JSON document in
    object storage. The backend hands out a short-lived URL for it; the client
    fetches the document directly.

Behavior:
    - `load_settings(assignment)` is the preview path: it only needs the
      settings block and falls back to the assignment's own settings when the
      document cannot be loaded.
    - `execute(handle)` returns the questions and requires an `AttemptHandle`,
      i.e. an attempt the server already recorded. Failures propagate.
    - Questions are returned in their `order`; the document is not validated
      beyond its top-level shape.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import httpx

from coursework.learning.adapters.ports import (
    LearningBackendProtocol,
    LearningClientError,
    NetworkError,
    ValidationError,
)
from coursework.learning.domain import Assignment
from coursework.learning.settings import EffectiveQuizSettings, resolve_quiz_settings
from coursework.learning.usecases.attempts import AttemptHandle
from coursework.storage.keys import redact_url

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuizContent:
    assignment_id: str
    attempt_id: str
    version: Optional[str]
    questions: list[Mapping[str, Any]]
    settings: EffectiveQuizSettings
    raw_settings: Mapping[str, Any] = field(default_factory=dict)

    @property
    def question_ids(self) -> list[str]:
        return [str(q.get("id")) for q in self.questions if q.get("id") is not None]


def _order(question: Mapping[str, Any]) -> tuple[int, int]:
    try:
        return (0, int(question.get("order")))
    except (TypeError, ValueError):
        return (1, 0)


class LoadQuizContentUseCase:
    def __init__(self, backend: LearningBackendProtocol, client: Optional[httpx.AsyncClient] = None) -> None:
        self._backend = backend
        self._client = client

    async def _fetch_document(self, assignment: Assignment) -> Mapping[str, Any]:
        if not assignment.has_question_set:
            raise ValidationError("no_question_set", assignment.id)
        url = await self._backend.get_question_data_url(assignment.id)
        client = self._client or httpx.AsyncClient(follow_redirects=False)
        try:
            resp = await client.get(url)
        except httpx.TransportError as exc:
            LOG.warning("learning.quiz.question_data_failed reason=transport url=%s", redact_url(url))
            raise NetworkError("question_data: transport error", reached_server=None) from exc
        finally:
            if self._client is None:
                await client.aclose()
        if resp.status_code >= 400:
            LOG.warning("learning.quiz.question_data_failed status=%s url=%s", resp.status_code, redact_url(url))
            raise NetworkError("question_data: HTTP error", reached_server=True, status_code=resp.status_code)
        try:
            doc = resp.json()
        except ValueError as exc:
            raise NetworkError("question_data: invalid JSON", reached_server=True) from exc
        if not isinstance(doc, dict):
            raise NetworkError("question_data: unexpected document", reached_server=True)
        return doc

    async def load_settings(self, assignment: Assignment) -> EffectiveQuizSettings:
        """Effective settings for the preview; assignment values when the document is unavailable."""
        if not assignment.has_question_set:
            return resolve_quiz_settings(assignment)
        try:
            doc = await self._fetch_document(assignment)
        except (LearningClientError, LookupError) as exc:
            LOG.warning("learning.quiz.settings_fallback assignment=%s error=%s", assignment.id, exc)
            return resolve_quiz_settings(assignment)
        settings = doc.get("settings")
        return resolve_quiz_settings(assignment, settings if isinstance(settings, dict) else None)

    async def execute(self, handle: AttemptHandle) -> QuizContent:
        """Questions and effective settings for a started attempt."""
        assignment = handle.assignment
        doc = await self._fetch_document(assignment)
        raw_settings = doc.get("settings") if isinstance(doc.get("settings"), dict) else {}
        questions = [q for q in (doc.get("questions") or []) if isinstance(q, dict)]
        LOG.info(
            "learning.quiz.content_loaded assignment=%s attempt=%s questions=%s",
            assignment.id,
            handle.attempt_id,
            len(questions),
        )
        return QuizContent(
            assignment_id=assignment.id,
            attempt_id=handle.attempt_id,
            version=doc.get("version"),
            questions=sorted(questions, key=_order),
            settings=resolve_quiz_settings(assignment, raw_settings),
            raw_settings=raw_settings,
        )


__all__ = ["LoadQuizContentUseCase", "QuizContent"]
