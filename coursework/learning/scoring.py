"""
Presentation of scores that distinguishes AI advice from instructor grades.

Why:
    Auto-graded attempts come back with a machine-generated score that is only
    advisory. The UI must label it as such and must never fold it into final
    grade aggregates.

Behavior:
    - Classification is closed and two-valued: `is_ai_score is True` means AI,
      every other value (False, None, missing) means instructor.
    - `summarize_scores` keeps final and advisory buckets apart; there is no
      combined average.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from coursework.learning.domain import Submission

AI_ADVISORY_LABEL = (
    "This score is AI-generated for reference only. "
    "Your final grade will be determined by your instructor."
)


class ScoreOrigin(str, Enum):
    AI = "ai"
    INSTRUCTOR = "instructor"


def score_origin(submission: Submission) -> ScoreOrigin:
    return ScoreOrigin.AI if submission.is_ai_score is True else ScoreOrigin.INSTRUCTOR


@dataclass(frozen=True)
class ScorePresentation:
    score: float
    feedback: Optional[str]
    origin: ScoreOrigin
    is_final: bool
    label: Optional[str]
    feedback_heading: str


def present_score(submission: Submission) -> Optional[ScorePresentation]:
    """Build the presentation record for a scored submission, else None."""
    if submission.score is None:
        return None
    origin = score_origin(submission)
    is_ai = origin is ScoreOrigin.AI
    return ScorePresentation(
        score=submission.score,
        feedback=submission.feedback,
        origin=origin,
        is_final=not is_ai,
        label=AI_ADVISORY_LABEL if is_ai else None,
        feedback_heading="AI Feedback" if is_ai else "Instructor Feedback",
    )


@dataclass(frozen=True)
class ScoreSummary:
    final_scores: tuple[float, ...]
    advisory_scores: tuple[float, ...]
    ungraded: int

    @property
    def final_average(self) -> Optional[float]:
        if not self.final_scores:
            return None
        return sum(self.final_scores) / len(self.final_scores)

    @property
    def advisory_average(self) -> Optional[float]:
        if not self.advisory_scores:
            return None
        return sum(self.advisory_scores) / len(self.advisory_scores)


def summarize_scores(submissions: Iterable[Submission]) -> ScoreSummary:
    final: list[float] = []
    advisory: list[float] = []
    ungraded = 0
    for sub in submissions:
        if sub.score is None:
            ungraded += 1
        elif score_origin(sub) is ScoreOrigin.AI:
            advisory.append(sub.score)
        else:
            final.append(sub.score)
    return ScoreSummary(final_scores=tuple(final), advisory_scores=tuple(advisory), ungraded=ungraded)


def needs_refresh(submission: Submission) -> bool:
    """AI-scored responses may not yet be visible in list queries."""
    return submission.score is not None and score_origin(submission) is ScoreOrigin.AI


__all__ = [
    "AI_ADVISORY_LABEL",
    "ScoreOrigin",
    "ScorePresentation",
    "ScoreSummary",
    "score_origin",
    "present_score",
    "summarize_scores",
    "needs_refresh",
]
