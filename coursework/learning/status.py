"""
Derived submission status for the learner view.

Intent:
    Map (due date, latest submission, current time) to exactly one display
    state. Nothing here performs I/O or keeps state; callers recompute after
    every refresh instead of caching a status.

Behavior:
    - A score always wins: `graded`.
    - A stored-object reference means delivered work: `submitted`.
      A registered record whose upload never completed has no reference and
      therefore counts as "no submission".
    - Otherwise the due date decides between `not_submitted` and `pending`.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from coursework.learning.domain import (
    Assignment,
    Submission,
    SubmissionStatus,
    latest_submission,
)


def derive_status(
    *,
    due_at: datetime,
    now: datetime,
    submission: Optional[Submission],
    has_question_url: bool = False,
) -> SubmissionStatus:
    # has_question_url only selects the UI affordance; the algorithm is shared.
    if submission is not None and submission.score is not None:
        return SubmissionStatus.GRADED
    if submission is not None and submission.has_payload:
        return SubmissionStatus.SUBMITTED
    if now > due_at:
        return SubmissionStatus.NOT_SUBMITTED
    return SubmissionStatus.PENDING


def can_submit(*, status: SubmissionStatus, due_at: datetime, now: datetime) -> bool:
    """Return True while the learner may (re)submit.

    Resubmission over an ungraded delivery is allowed only until the due date.
    """
    if status is SubmissionStatus.PENDING:
        return True
    if status is SubmissionStatus.SUBMITTED:
        return now <= due_at
    return False


@dataclass(frozen=True)
class StatusView:
    status: SubmissionStatus
    can_submit: bool
    is_overdue: bool
    affordance: str  # "quiz" | "file"
    submission: Optional[Submission] = None


def build_status_view(
    assignment: Assignment,
    submissions: Iterable[Submission],
    now: datetime,
) -> StatusView:
    """Derive the full status view for one assignment from fresh server data."""
    mine = [s for s in submissions if s.assignment_id == assignment.id]
    latest = latest_submission(mine)
    status = derive_status(
        due_at=assignment.due_at,
        now=now,
        submission=latest,
        has_question_url=assignment.has_question_set,
    )
    return StatusView(
        status=status,
        can_submit=can_submit(status=status, due_at=assignment.due_at, now=now),
        is_overdue=now > assignment.due_at,
        affordance="quiz" if assignment.has_question_set else "file",
        submission=latest,
    )


__all__ = ["derive_status", "can_submit", "StatusView", "build_status_view"]
