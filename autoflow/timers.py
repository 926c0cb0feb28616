"""Drift-free recurring timers for scheduled tasks and schedule triggers."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Coroutine, Dict, Optional, Set

from .contracts import utcnow
from .schedule import ScheduleEvaluator

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
FireCallback = Callable[[datetime], None]


def advance_past(
    evaluator: ScheduleEvaluator, expression: str, start: datetime, now: datetime
) -> datetime:
    """Return the first fire time after ``now`` on the schedule anchored at ``start``.

    Interval schedules stay aligned with their original anchor. The evaluator
    computes the result directly, so a long gap since ``start`` costs no more
    than a short one.
    """
    return evaluator.advance_past(expression, start, now)


class RecurringTimer:
    """Invoke ``callback`` at every fire time of ``expression``.

    The callback receives the scheduled fire time and must not block; it is
    expected to spawn the real work on its own task. Each next fire time is
    computed from the previous scheduled one, so a slow callback or a busy
    loop never shifts the schedule.
    """

    def __init__(
        self,
        name: str,
        expression: str,
        evaluator: ScheduleEvaluator,
        callback: FireCallback,
        first_fire: datetime,
        clock: Clock = utcnow,
    ) -> None:
        self.name = name
        self.expression = expression
        self._evaluator = evaluator
        self._callback = callback
        self._clock = clock
        self._next_fire = first_fire
        self._task: Optional[asyncio.Task] = None

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def next_fire_at(self) -> datetime:
        return self._next_fire

    def start(self) -> None:
        """Arm the timer on the running event loop."""
        if self.armed:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=f"timer:{self.name}")
        logger.debug(f"Armed timer {self.name}, first fire at {self._next_fire}")

    def cancel(self) -> None:
        """Disarm the timer. No callback runs after this returns."""
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug(f"Released timer {self.name}")

    async def _run(self) -> None:
        while True:
            delay = (self._next_fire - self._clock()).total_seconds()
            if delay > 0:
                await asyncio.sleep(delay)

            fired_at = self._next_fire
            try:
                following = self._following(fired_at)
            except Exception:
                logger.exception(
                    f"Timer {self.name} cannot compute the fire time after {fired_at}; "
                    "stopping"
                )
                following = None
            if following is not None:
                self._next_fire = following

            try:
                self._callback(fired_at)
            except Exception:
                logger.exception(f"Timer {self.name} callback failed")
            if following is None:
                return

    def _following(self, fired_at: datetime) -> datetime:
        now = self._clock()
        following = self._evaluator.next_fire_after(self.expression, fired_at)
        if following <= now:
            following = advance_past(self._evaluator, self.expression, following, now)
            logger.warning(
                f"Timer {self.name} missed fire times after {fired_at}; "
                f"next fire at {following}"
            )
        return following


class TimerPool:
    """Owns the timers of one manager plus the firings they spawn.

    Timers are keyed by the id of the owning task or trigger. Releasing a key
    cancels its timer; firings already spawned run to completion.
    """

    def __init__(self, evaluator: ScheduleEvaluator, clock: Clock = utcnow) -> None:
        self._evaluator = evaluator
        self._clock = clock
        self._timers: Dict[str, RecurringTimer] = {}
        self._firings: Set[asyncio.Task] = set()

    def arm(
        self, key: str, expression: str, first_fire: datetime, callback: FireCallback
    ) -> bool:
        """Arm a timer for ``key`` unless one is already armed.

        Returns:
            ``True`` if a new timer was armed.
        """
        if self.is_armed(key):
            return False
        timer = RecurringTimer(
            key, expression, self._evaluator, callback, first_fire, self._clock
        )
        timer.start()
        self._timers[key] = timer
        return True

    def release(self, key: str) -> None:
        timer = self._timers.pop(key, None)
        if timer is not None:
            timer.cancel()

    def is_armed(self, key: str) -> bool:
        timer = self._timers.get(key)
        return timer is not None and timer.armed

    def next_fire(self, key: str) -> Optional[datetime]:
        timer = self._timers.get(key)
        return timer.next_fire_at if timer is not None and timer.armed else None

    def spawn(self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None) -> asyncio.Task:
        """Run ``coro`` as a tracked firing task."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._firings.add(task)
        task.add_done_callback(self._firings.discard)
        return task

    @property
    def armed_keys(self) -> list[str]:
        return [key for key in self._timers if self.is_armed(key)]

    async def close(self) -> None:
        """Release every timer and wait for in-flight firings."""
        for key in list(self._timers):
            self.release(key)
        if self._firings:
            await asyncio.gather(*list(self._firings), return_exceptions=True)
