"""
Learning: derived submission status

Scenarios:
- Overdue with no submission is `not_submitted`; a stored reference is `submitted`
- A score always wins (`graded`), including AI advisory scores
- Resubmission over an ungraded delivery is possible only until the due date
- A registered record without payload counts as no submission
"""
from __future__ import annotations

import itertools
from datetime import datetime, timezone

import pytest

from coursework.learning.domain import SubmissionStatus
from coursework.learning.scoring import AI_ADVISORY_LABEL, present_score
from coursework.learning.status import build_status_view, can_submit, derive_status

from conftest import make_assignment, make_submission

UTC = timezone.utc
DUE = datetime(2025, 1, 1, tzinfo=UTC)


def test_overdue_without_submission_is_not_submitted():
    assignment = make_assignment(due_at=DUE)
    view = build_status_view(assignment, [], datetime(2025, 1, 2, tzinfo=UTC))
    assert view.status is SubmissionStatus.NOT_SUBMITTED
    assert view.can_submit is False
    assert view.is_overdue is True


def test_stored_reference_past_due_is_submitted_but_closed():
    assignment = make_assignment(due_at=DUE)
    sub = make_submission(store_url="s3://x")
    view = build_status_view(assignment, [sub], datetime(2025, 1, 2, tzinfo=UTC))
    assert view.status is SubmissionStatus.SUBMITTED
    assert view.can_submit is False


def test_ai_scored_submission_is_graded_with_advisory_label():
    assignment = make_assignment(due_at=datetime(2025, 3, 1, tzinfo=UTC))
    sub = make_submission(score=92.0, is_ai_score=True)
    view = build_status_view(assignment, [sub], datetime(2025, 2, 1, tzinfo=UTC))
    assert view.status is SubmissionStatus.GRADED
    presentation = present_score(view.submission)
    assert presentation is not None
    assert presentation.label == AI_ADVISORY_LABEL
    assert presentation.is_final is False


def test_before_due_without_submission_is_pending():
    view = build_status_view(make_assignment(due_at=DUE), [], datetime(2024, 12, 1, tzinfo=UTC))
    assert view.status is SubmissionStatus.PENDING
    assert view.can_submit is True
    assert view.affordance == "file"


def test_quiz_assignment_uses_quiz_affordance_with_same_status():
    assignment = make_assignment(due_at=DUE, question_url="https://cdn.example/q.json")
    view = build_status_view(assignment, [], datetime(2024, 12, 1, tzinfo=UTC))
    assert view.affordance == "quiz"
    assert view.status is SubmissionStatus.PENDING


def test_due_instant_itself_is_not_overdue():
    assert derive_status(due_at=DUE, now=DUE, submission=None) is SubmissionStatus.PENDING
    assert can_submit(status=SubmissionStatus.SUBMITTED, due_at=DUE, now=DUE) is True


_NOWS = [datetime(2024, 12, 31, tzinfo=UTC), DUE, datetime(2025, 1, 2, tzinfo=UTC)]
_SUBS = [
    None,
    make_submission(),
    make_submission(store_url="s3://x"),
    make_submission(score=0.0),
    make_submission(store_url="s3://x", score=80.0, is_ai_score=True),
]


@pytest.mark.parametrize("now,sub", list(itertools.product(_NOWS, _SUBS)))
def test_status_invariants_hold_for_all_inputs(now, sub):
    first = derive_status(due_at=DUE, now=now, submission=sub)
    # Same inputs, same answer.
    assert derive_status(due_at=DUE, now=now, submission=sub) is first
    scored = sub is not None and sub.score is not None
    assert (first is SubmissionStatus.GRADED) == scored
    if first is SubmissionStatus.NOT_SUBMITTED:
        assert now > DUE
        assert sub is None or not sub.has_payload
    allowed = can_submit(status=first, due_at=DUE, now=now)
    if first is SubmissionStatus.PENDING:
        assert allowed is True
    elif first is SubmissionStatus.SUBMITTED:
        assert allowed is (now <= DUE)
    else:
        assert allowed is False


def test_zero_score_counts_as_graded():
    sub = make_submission(score=0.0)
    assert derive_status(due_at=DUE, now=DUE, submission=sub) is SubmissionStatus.GRADED


def test_payload_less_resubmission_does_not_hide_earlier_delivery():
    delivered = make_submission("s-1", store_url="s3://x", created_at=datetime(2024, 12, 1, tzinfo=UTC))
    unfinished = make_submission("s-2", created_at=datetime(2024, 12, 2, tzinfo=UTC))
    view = build_status_view(make_assignment(due_at=DUE), [delivered, unfinished], datetime(2024, 12, 3, tzinfo=UTC))
    assert view.status is SubmissionStatus.SUBMITTED
    assert view.submission is not None and view.submission.id == "s-1"


def test_other_assignments_submissions_are_ignored():
    other = make_submission(assignment_id="a-2", store_url="s3://x")
    view = build_status_view(make_assignment(due_at=DUE), [other], datetime(2024, 12, 3, tzinfo=UTC))
    assert view.status is SubmissionStatus.PENDING
