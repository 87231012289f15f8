"""
Effective quiz settings resolved from question-set and assignment sources.

Why:
    Quiz settings can come from the question-set document (instructor's quiz
    editor) and from the assignment record. Resolving them once at load time
    keeps precedence rules in one place instead of scattered `??` chains.

Behavior:
    - The question-set value wins when present, then the assignment value,
      then the default.
    - Non-positive time limits mean "untimed".
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, TypeVar

from coursework.learning.domain import (
    DEFAULT_MAX_ATTEMPTS,
    UNLIMITED_ATTEMPTS,
    AnswerVisibility,
    Assignment,
)

T = TypeVar("T")


def resolve(question_setting: Optional[T], assignment_setting: Optional[T], default: T) -> T:
    if question_setting is not None:
        return question_setting
    if assignment_setting is not None:
        return assignment_setting
    return default


@dataclass(frozen=True)
class EffectiveQuizSettings:
    time_limit_minutes: Optional[int]
    max_attempts: int
    answer_visibility: AnswerVisibility
    shuffle_questions: bool
    allow_back_navigation: bool
    auto_gradable: bool = False

    @property
    def is_timed(self) -> bool:
        return self.time_limit_minutes is not None


def _positive_or_none(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def _visibility_from_question_settings(settings: Mapping[str, Any]) -> Optional[AnswerVisibility]:
    raw = settings.get("answerVisibility")
    if raw is not None:
        try:
            return AnswerVisibility(str(raw))
        except ValueError:
            return None
    # Older question-set documents carry two booleans instead of a policy.
    if settings.get("showAnswersAfterSubmission"):
        return AnswerVisibility.IMMEDIATELY
    if settings.get("showAnswersAfterDueDate"):
        return AnswerVisibility.AFTER_DUE_DATE
    return None


def resolve_quiz_settings(
    assignment: Assignment,
    question_settings: Optional[Mapping[str, Any]] = None,
) -> EffectiveQuizSettings:
    qs = question_settings or {}
    time_limit = resolve(
        _positive_or_none(qs.get("timeLimitMinutes")),
        assignment.time_limit_minutes,
        None,
    )
    raw_max = qs.get("maxAttempts")
    q_max: Optional[int] = None
    if raw_max is not None:
        try:
            q_max = int(raw_max)
        except (TypeError, ValueError):
            q_max = None
        if q_max is not None and q_max != UNLIMITED_ATTEMPTS and q_max <= 0:
            q_max = None
    return EffectiveQuizSettings(
        time_limit_minutes=_positive_or_none(time_limit),
        max_attempts=resolve(q_max, assignment.max_attempts, DEFAULT_MAX_ATTEMPTS),
        answer_visibility=resolve(
            _visibility_from_question_settings(qs),
            assignment.answer_visibility,
            AnswerVisibility.NEVER,
        ),
        shuffle_questions=bool(resolve(qs.get("shuffleQuestions"), None, False)),
        allow_back_navigation=bool(resolve(qs.get("allowBackNavigation"), None, True)),
        auto_gradable=bool(resolve(qs.get("isAutoGradable"), assignment.auto_gradable, False)),
    )


def can_show_answers(policy: AnswerVisibility, *, due_at: datetime, now: datetime) -> bool:
    if policy is AnswerVisibility.IMMEDIATELY:
        return True
    if policy is AnswerVisibility.AFTER_DUE_DATE:
        return now > due_at
    return False


__all__ = ["resolve", "EffectiveQuizSettings", "resolve_quiz_settings", "can_show_answers"]
