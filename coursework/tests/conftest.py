"""
Pytest configuration for the coursework client tests.

Why: Force AnyIO to use the asyncio backend (timer and quiz session use
asyncio primitives directly) and keep configuration env vars from leaking
between tests.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from coursework.learning.domain import Assignment, Submission

_ENV_VARS = (
    "LMS_API_BASE_URL",
    "LMS_API_TOKEN",
    "LMS_HTTP_TIMEOUT_SECONDS",
    "LMS_REFRESH_DELAYS",
    "QUIZ_TIMER_TICK_SECONDS",
    "LMS_ACTIVE_STORE_PATH",
    "SUBMISSION_MAX_UPLOAD_BYTES",
    "STORAGE_UPLOAD_TIMEOUT_SECONDS",
    "STORAGE_UPLOAD_URL_TTL_SECONDS",
    "LOG_LEVEL",
)

UTC = timezone.utc


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


def make_assignment(
    assignment_id: str = "a-1",
    *,
    due_at: Optional[datetime] = None,
    **overrides: Any,
) -> Assignment:
    fields: dict[str, Any] = {
        "id": assignment_id,
        "title": "Essay on Climate",
        "due_at": due_at or datetime(2025, 3, 1, tzinfo=UTC),
    }
    fields.update(overrides)
    return Assignment(**fields)


def make_submission(
    submission_id: str = "s-1",
    *,
    assignment_id: str = "a-1",
    learner_id: str = "learner-1",
    created_at: Optional[datetime] = None,
    **overrides: Any,
) -> Submission:
    return Submission(
        id=submission_id,
        assignment_id=assignment_id,
        learner_id=learner_id,
        created_at=created_at or datetime(2025, 1, 1, tzinfo=UTC),
        **overrides,
    )


class FrozenClock:
    """Callable clock that tests advance by hand."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


async def no_sleep(_delay: float) -> None:
    return None
