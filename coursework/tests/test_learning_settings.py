"""
Learning: effective quiz settings (question set over assignment over default)
"""
from __future__ import annotations

from datetime import datetime, timezone

from coursework.learning.domain import UNLIMITED_ATTEMPTS, AnswerVisibility
from coursework.learning.settings import can_show_answers, resolve, resolve_quiz_settings

from conftest import make_assignment

UTC = timezone.utc
DUE = datetime(2025, 1, 1, tzinfo=UTC)


def test_resolve_precedence():
    assert resolve(5, 10, 1) == 5
    assert resolve(None, 10, 1) == 10
    assert resolve(None, None, 1) == 1
    assert resolve(0, 10, 1) == 0


def test_question_settings_override_assignment():
    assignment = make_assignment(time_limit_minutes=30, max_attempts=2)
    eff = resolve_quiz_settings(assignment, {"timeLimitMinutes": 10, "maxAttempts": -1})
    assert eff.time_limit_minutes == 10
    assert eff.max_attempts == UNLIMITED_ATTEMPTS
    assert eff.is_timed is True


def test_assignment_values_apply_when_question_set_is_silent():
    assignment = make_assignment(time_limit_minutes=30, max_attempts=3, answer_visibility=AnswerVisibility.IMMEDIATELY)
    eff = resolve_quiz_settings(assignment, {})
    assert eff.time_limit_minutes == 30
    assert eff.max_attempts == 3
    assert eff.answer_visibility is AnswerVisibility.IMMEDIATELY
    assert eff.allow_back_navigation is True
    assert eff.shuffle_questions is False


def test_invalid_question_values_fall_through():
    assignment = make_assignment(time_limit_minutes=None, max_attempts=2)
    eff = resolve_quiz_settings(assignment, {"timeLimitMinutes": 0, "maxAttempts": 0})
    assert eff.time_limit_minutes is None
    assert eff.is_timed is False
    assert eff.max_attempts == 2


def test_legacy_visibility_booleans():
    assignment = make_assignment()
    assert resolve_quiz_settings(assignment, {"showAnswersAfterSubmission": True}).answer_visibility is AnswerVisibility.IMMEDIATELY
    assert resolve_quiz_settings(assignment, {"showAnswersAfterDueDate": True}).answer_visibility is AnswerVisibility.AFTER_DUE_DATE
    assert resolve_quiz_settings(assignment, None).answer_visibility is AnswerVisibility.NEVER


def test_can_show_answers():
    before = datetime(2024, 12, 31, tzinfo=UTC)
    after = datetime(2025, 1, 2, tzinfo=UTC)
    assert can_show_answers(AnswerVisibility.IMMEDIATELY, due_at=DUE, now=before) is True
    assert can_show_answers(AnswerVisibility.AFTER_DUE_DATE, due_at=DUE, now=before) is False
    assert can_show_answers(AnswerVisibility.AFTER_DUE_DATE, due_at=DUE, now=after) is True
    assert can_show_answers(AnswerVisibility.NEVER, due_at=DUE, now=after) is False


def test_auto_gradable_follows_question_set_then_assignment():
    assignment = make_assignment(auto_gradable=True)
    assert resolve_quiz_settings(assignment, {}).auto_gradable is True
    assert resolve_quiz_settings(assignment, {"isAutoGradable": False}).auto_gradable is False
    assert resolve_quiz_settings(make_assignment(), {"isAutoGradable": True}).auto_gradable is True
