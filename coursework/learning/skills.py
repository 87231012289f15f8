"""Skill grouping and filtering for assignment navigation."""
from __future__ import annotations

from collections import Counter
from datetime import datetime
from enum import Enum
from typing import Iterable, Mapping, Optional, Sequence

from coursework.learning.domain import Assignment, Submission, SubmissionStatus
from coursework.learning.status import build_status_view

UNCATEGORIZED = "Other"


class SkillKind(str, Enum):
    LISTENING = "listening"
    READING = "reading"
    WRITING = "writing"
    SPEAKING = "speaking"
    GENERAL = "general"


def skill_kind(skill_name: Optional[str]) -> SkillKind:
    if not skill_name:
        return SkillKind.GENERAL
    lowered = skill_name.lower()
    for kind in (SkillKind.LISTENING, SkillKind.READING, SkillKind.WRITING, SkillKind.SPEAKING):
        if kind.value in lowered:
            return kind
    return SkillKind.GENERAL


def _skill_label(assignment: Assignment) -> str:
    name = (assignment.skill_name or "").strip()
    return name or UNCATEGORIZED


def group_by_skill(assignments: Iterable[Assignment]) -> dict[str, list[Assignment]]:
    """Partition assignments by skill name, keeping first-seen order."""
    groups: dict[str, list[Assignment]] = {}
    for a in assignments:
        groups.setdefault(_skill_label(a), []).append(a)
    return groups


def filter_by_skill(assignments: Sequence[Assignment], skill: Optional[str]) -> list[Assignment]:
    """Return assignments matching a skill name or id (case-insensitive).

    `None`, empty and "all" select everything; the uncategorized label selects
    assignments without a skill.
    """
    if not skill or skill.strip().lower() == "all":
        return list(assignments)
    wanted = skill.strip().lower()
    if wanted == UNCATEGORIZED.lower():
        return [a for a in assignments if not (a.skill_name or "").strip()]
    return [
        a
        for a in assignments
        if (a.skill_name or "").strip().lower() == wanted or (a.skill_id or "").strip().lower() == wanted
    ]


def status_counts_by_skill(
    assignments: Iterable[Assignment],
    submissions_by_assignment: Mapping[str, Sequence[Submission]],
    now: datetime,
) -> dict[str, Counter[SubmissionStatus]]:
    counts: dict[str, Counter[SubmissionStatus]] = {}
    for label, group in group_by_skill(assignments).items():
        bucket: Counter[SubmissionStatus] = Counter()
        for a in group:
            view = build_status_view(a, submissions_by_assignment.get(a.id, ()), now)
            bucket[view.status] += 1
        counts[label] = bucket
    return counts


__all__ = [
    "UNCATEGORIZED",
    "SkillKind",
    "skill_kind",
    "group_by_skill",
    "filter_by_skill",
    "status_counts_by_skill",
]
