"""Shared fixtures for schedule-driven tests."""

from datetime import datetime, timezone

import pytest

from autoflow.schedule import (
    CompositeScheduleEvaluator,
    CronScheduleEvaluator,
    IntervalScheduleEvaluator,
)


class FakeClock:
    """Settable clock for managers and timers."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class CountingEvaluator(CompositeScheduleEvaluator):
    """Default evaluator that counts how often fire times are stepped."""

    def __init__(self) -> None:
        self.steps = 0
        counter = self

        class _Interval(IntervalScheduleEvaluator):
            def next_fire_after(self, expression, reference):
                counter.steps += 1
                return super().next_fire_after(expression, reference)

        class _Cron(CronScheduleEvaluator):
            def next_fire_after(self, expression, reference):
                counter.steps += 1
                return super().next_fire_after(expression, reference)

        super().__init__([_Interval(), _Cron()])


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, 30, tzinfo=timezone.utc))


@pytest.fixture
def counting_evaluator():
    return CountingEvaluator()
