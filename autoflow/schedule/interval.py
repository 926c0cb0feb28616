"""Fixed-interval schedules written as ``@every <n><unit>``."""

from __future__ import annotations

import re
from datetime import datetime, timedelta

from ..errors import ValidationError
from .base import ScheduleEvaluator

_PATTERN = re.compile(r"^@every\s+(\d+(?:\.\d+)?)\s*([a-z]+)$")

_UNITS = {
    "s": 1,
    "sec": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
}


def interval_expression(interval: float, unit: str) -> str:
    """Build an ``@every`` expression from ``{interval, unit}`` trigger config."""
    return f"@every {interval}{unit}"


class IntervalScheduleEvaluator(ScheduleEvaluator):
    """Fire every fixed number of seconds, minutes, hours or days."""

    def supports(self, expression: str) -> bool:
        return expression.strip().startswith("@every")

    def parse(self, expression: str) -> timedelta:
        match = _PATTERN.match(expression.strip().lower())
        if not match or match.group(2) not in _UNITS:
            raise ValidationError(f"Invalid interval expression {expression!r}")
        seconds = float(match.group(1)) * _UNITS[match.group(2)]
        if seconds <= 0:
            raise ValidationError(f"Interval must be positive: {expression!r}")
        return timedelta(seconds=seconds)

    def validate(self, expression: str) -> None:
        self.parse(expression)

    def next_fire_after(self, expression: str, reference: datetime) -> datetime:
        return reference + self.parse(expression)

    def advance_past(self, expression: str, start: datetime, now: datetime) -> datetime:
        period = self.parse(expression)
        if start > now:
            return start
        return start + ((now - start) // period + 1) * period
