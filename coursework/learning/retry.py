"""
Bounded retry for read-after-write lag.

Intent:
    A freshly graded submission may not be visible in the next list query.
    Instead of polling forever we re-read a fixed number of times with
    increasing delays and report whether the expected state showed up.

Behavior:
    - `fetch()` runs once immediately, then once after each entry in `delays`.
    - Stops as soon as `predicate(value)` holds.
    - Exhaustion is not an error: the outcome carries `satisfied=False` and the
      last value so callers can suggest a manual reload.
    - Exceptions raised by `fetch()` propagate unchanged.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Sequence, TypeVar

LOG = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_REFRESH_DELAYS: tuple[float, ...] = (1.0, 1.5)


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    value: T
    attempts: int
    satisfied: bool


async def retry_until(
    fetch: Callable[[], Awaitable[T]],
    *,
    predicate: Callable[[T], bool],
    delays: Sequence[float] = DEFAULT_REFRESH_DELAYS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RetryOutcome[T]:
    value = await fetch()
    attempts = 1
    if predicate(value):
        return RetryOutcome(value=value, attempts=attempts, satisfied=True)
    for delay in delays:
        await sleep(max(0.0, float(delay)))
        value = await fetch()
        attempts += 1
        if predicate(value):
            return RetryOutcome(value=value, attempts=attempts, satisfied=True)
    LOG.warning("learning.refresh.stale attempts=%s", attempts)
    return RetryOutcome(value=value, attempts=attempts, satisfied=False)


__all__ = ["DEFAULT_REFRESH_DELAYS", "RetryOutcome", "retry_until"]
