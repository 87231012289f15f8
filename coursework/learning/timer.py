"""
Countdown for timed quiz attempts.

Intent:
    Expose the remaining time of an attempt and trigger exactly one
    auto-submit when it runs out.

Behavior:
    - Remaining time is recomputed from the wall clock on every tick, never
      decremented, so a suspended event loop catches up on the next tick.
    - Without a time limit the timer is inert: `start()` does nothing and
      `remaining_seconds()` returns None.
    - `cancel()` (or leaving the `async with` block) tears the task down
      without firing.
"""
from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

LOG = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_time(seconds: int) -> str:
    """Format seconds as MM:SS (minutes may exceed 59)."""
    seconds = max(0, int(seconds))
    mins, secs = divmod(seconds, 60)
    return f"{mins:02d}:{secs:02d}"


class QuizTimer:
    def __init__(
        self,
        time_limit_minutes: Optional[int],
        started_at: datetime,
        on_expire: Callable[[], Awaitable[object]],
        *,
        tick_seconds: float = 1.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._deadline: Optional[datetime] = None
        if time_limit_minutes is not None and time_limit_minutes > 0:
            self._deadline = started_at + timedelta(minutes=time_limit_minutes)
        self._on_expire = on_expire
        self._tick = max(0.01, float(tick_seconds))
        self._clock = clock
        self._task: Optional[asyncio.Task[None]] = None
        self._fired = False
        self._last_remaining: Optional[int] = None

    @property
    def is_inert(self) -> bool:
        return self._deadline is None

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def remaining_seconds(self) -> Optional[int]:
        if self._deadline is None:
            return None
        delta = (self._deadline - self._clock()).total_seconds()
        remaining = max(0, math.ceil(delta))
        # Clock skew must not make the countdown go back up.
        if self._last_remaining is not None and remaining > self._last_remaining:
            remaining = self._last_remaining
        self._last_remaining = remaining
        return remaining

    def start(self) -> None:
        if self._deadline is None or self._fired or self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            remaining = self.remaining_seconds()
            if remaining is not None and remaining <= 0:
                break
            await asyncio.sleep(self._tick)
        self._fired = True
        LOG.info("learning.quiz.timer_expired")
        await self._on_expire()

    def _is_own_task(self) -> bool:
        try:
            return self._task is not None and asyncio.current_task() is self._task
        except RuntimeError:
            return False

    def cancel(self) -> None:
        # The expiry callback may end the session from inside the timer task.
        if self._task is not None and not self._task.done() and not self._is_own_task():
            self._task.cancel()

    async def stop(self) -> None:
        """Cancel and wait until the task is gone; a failed expiry callback is logged."""
        if self._is_own_task():
            return
        task = self._task
        self.cancel()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                # Teardown must not mask the owner's own exception.
                LOG.exception("learning.quiz.timer_callback_failed")
        self._task = None

    async def wait(self) -> None:
        """Wait for expiry handling to finish (returns at once when idle)."""
        if self._task is not None:
            await self._task

    async def __aenter__(self) -> "QuizTimer":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()


__all__ = ["QuizTimer", "format_time"]
