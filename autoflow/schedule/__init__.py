"""Schedule evaluators and factory."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ..config import AutoflowConfig
from ..errors import ValidationError
from .base import ScheduleEvaluator
from .cron import CronScheduleEvaluator
from .interval import IntervalScheduleEvaluator, interval_expression


class CompositeScheduleEvaluator(ScheduleEvaluator):
    """Route each expression to the first evaluator that supports it."""

    def __init__(self, evaluators: Sequence[ScheduleEvaluator]) -> None:
        self._evaluators = list(evaluators)

    def _select(self, expression: str) -> ScheduleEvaluator:
        if not isinstance(expression, str) or not expression.strip():
            raise ValidationError("Schedule expression must be a non-empty string")
        for evaluator in self._evaluators:
            if evaluator.supports(expression):
                return evaluator
        raise ValidationError(f"Unsupported schedule expression {expression!r}")

    def supports(self, expression: str) -> bool:
        return any(e.supports(expression) for e in self._evaluators)

    def validate(self, expression: str) -> None:
        self._select(expression).validate(expression)

    def next_fire_after(self, expression: str, reference: datetime) -> datetime:
        return self._select(expression).next_fire_after(expression, reference)

    def advance_past(self, expression: str, start: datetime, now: datetime) -> datetime:
        return self._select(expression).advance_past(expression, start, now)


def get_evaluator(config: Optional[AutoflowConfig] = None) -> ScheduleEvaluator:
    """Factory for the default evaluator: ``@every`` intervals plus crontab."""

    config = config or AutoflowConfig()
    return CompositeScheduleEvaluator(
        [
            IntervalScheduleEvaluator(),
            CronScheduleEvaluator(timezone=config.scheduler.timezone),
        ]
    )


__all__ = [
    "ScheduleEvaluator",
    "CronScheduleEvaluator",
    "IntervalScheduleEvaluator",
    "CompositeScheduleEvaluator",
    "interval_expression",
    "get_evaluator",
]
