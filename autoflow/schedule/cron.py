"""Crontab evaluation backed by APScheduler's cron trigger."""

from __future__ import annotations

from datetime import datetime
from typing import Dict

from apscheduler.triggers.cron import CronTrigger

from ..constants import DEFAULT_TIMEZONE
from ..errors import ValidationError
from .base import ScheduleEvaluator


class CronScheduleEvaluator(ScheduleEvaluator):
    """Evaluate standard five-field crontab expressions."""

    def __init__(self, timezone: str = DEFAULT_TIMEZONE) -> None:
        self.timezone = timezone
        self._triggers: Dict[str, CronTrigger] = {}

    def supports(self, expression: str) -> bool:
        return not expression.strip().startswith("@")

    def _trigger(self, expression: str) -> CronTrigger:
        trigger = self._triggers.get(expression)
        if trigger is None:
            try:
                trigger = CronTrigger.from_crontab(expression, timezone=self.timezone)
            except (ValueError, TypeError) as exc:
                raise ValidationError(
                    f"Invalid cron expression {expression!r}: {exc}"
                ) from exc
            self._triggers[expression] = trigger
        return trigger

    def validate(self, expression: str) -> None:
        self._trigger(expression)

    def next_fire_after(self, expression: str, reference: datetime) -> datetime:
        # Passing ``reference`` as the previous fire time makes the result
        # strictly later than it.
        fire_time = self._trigger(expression).get_next_fire_time(reference, reference)
        if fire_time is None:
            raise ValidationError(f"Cron expression {expression!r} never fires again")
        return fire_time
