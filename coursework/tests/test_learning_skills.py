"""
Learning: skill grouping and filtering
"""
from __future__ import annotations

from datetime import datetime, timezone

from coursework.learning.domain import SubmissionStatus
from coursework.learning.skills import (
    UNCATEGORIZED,
    SkillKind,
    filter_by_skill,
    group_by_skill,
    skill_kind,
    status_counts_by_skill,
)

from conftest import make_assignment, make_submission

UTC = timezone.utc


def _assignments():
    return [
        make_assignment("a-1", skill_name="Writing", skill_id="sk-w"),
        make_assignment("a-2", skill_name="Listening Practice", skill_id="sk-l"),
        make_assignment("a-3"),
        make_assignment("a-4", skill_name="Writing", skill_id="sk-w"),
    ]


def test_skill_kind_matches_by_substring():
    assert skill_kind("Academic Writing") is SkillKind.WRITING
    assert skill_kind("speaking part 2") is SkillKind.SPEAKING
    assert skill_kind("Grammar") is SkillKind.GENERAL
    assert skill_kind(None) is SkillKind.GENERAL


def test_group_by_skill_keeps_order_and_uncategorized_bucket():
    groups = group_by_skill(_assignments())
    assert list(groups) == ["Writing", "Listening Practice", UNCATEGORIZED]
    assert [a.id for a in groups["Writing"]] == ["a-1", "a-4"]
    assert [a.id for a in groups[UNCATEGORIZED]] == ["a-3"]


def test_filter_by_skill_accepts_name_id_all_and_other():
    items = _assignments()
    assert len(filter_by_skill(items, None)) == 4
    assert len(filter_by_skill(items, "ALL")) == 4
    assert [a.id for a in filter_by_skill(items, "writing")] == ["a-1", "a-4"]
    assert [a.id for a in filter_by_skill(items, "sk-l")] == ["a-2"]
    assert [a.id for a in filter_by_skill(items, "other")] == ["a-3"]
    assert filter_by_skill(items, "Speaking") == []


def test_status_counts_by_skill():
    now = datetime(2025, 2, 1, tzinfo=UTC)
    subs = {"a-1": [make_submission(assignment_id="a-1", store_url="s3://x")]}
    counts = status_counts_by_skill(_assignments(), subs, now)
    assert counts["Writing"][SubmissionStatus.SUBMITTED] == 1
    assert counts["Writing"][SubmissionStatus.PENDING] == 1
    assert counts[UNCATEGORIZED][SubmissionStatus.PENDING] == 1
