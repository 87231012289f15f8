"""
Learning: bounded retry for read-after-write lag
"""
from __future__ import annotations

import pytest

from coursework.learning.retry import DEFAULT_REFRESH_DELAYS, retry_until

pytestmark = pytest.mark.anyio("asyncio")


class _Recorder:
    def __init__(self, values):
        self.values = list(values)
        self.calls = 0
        self.sleeps: list[float] = []

    async def fetch(self):
        self.calls += 1
        return self.values[min(self.calls - 1, len(self.values) - 1)]

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)


async def test_stops_as_soon_as_predicate_holds():
    rec = _Recorder([None, 42])
    outcome = await retry_until(rec.fetch, predicate=lambda v: v is not None, sleep=rec.sleep)
    assert outcome.satisfied is True
    assert outcome.value == 42
    assert outcome.attempts == 2
    assert rec.sleeps == [1.0]


async def test_exhaustion_returns_last_value_without_raising():
    rec = _Recorder([None])
    outcome = await retry_until(rec.fetch, predicate=lambda v: v is not None, sleep=rec.sleep)
    assert outcome.satisfied is False
    assert outcome.value is None
    assert outcome.attempts == 1 + len(DEFAULT_REFRESH_DELAYS)
    assert rec.sleeps == list(DEFAULT_REFRESH_DELAYS)


async def test_no_sleep_when_first_read_is_fresh():
    rec = _Recorder([1])
    outcome = await retry_until(rec.fetch, predicate=bool, delays=(5.0,), sleep=rec.sleep)
    assert outcome.attempts == 1
    assert rec.sleeps == []


async def test_fetch_errors_propagate():
    async def _boom():
        raise RuntimeError("down")

    with pytest.raises(RuntimeError):
        await retry_until(_boom, predicate=bool, delays=(0.0,))
