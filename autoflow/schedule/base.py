"""Schedule evaluator interface."""

from __future__ import annotations

import abc
from datetime import datetime


class ScheduleEvaluator(metaclass=abc.ABCMeta):
    """Resolves a schedule expression to concrete fire times.

    The scheduler and trigger manager only ever ask "when is the next fire
    after this instant", so they stay agnostic to the expression syntax.
    """

    def supports(self, expression: str) -> bool:
        """Return ``True`` if this evaluator understands ``expression``."""
        return True

    @abc.abstractmethod
    def validate(self, expression: str) -> None:
        """Raise :class:`~autoflow.errors.ValidationError` if unparsable."""
        raise NotImplementedError

    @abc.abstractmethod
    def next_fire_after(self, expression: str, reference: datetime) -> datetime:
        """Return the first fire time strictly after ``reference``."""
        raise NotImplementedError

    def advance_past(self, expression: str, start: datetime, now: datetime) -> datetime:
        """Return the first fire time of the schedule anchored at ``start`` after ``now``.

        ``start`` itself is returned when it is still in the future. The
        default suits calendar-anchored schedules, whose fire times do not
        depend on ``start``.
        """
        if start > now:
            return start
        return self.next_fire_after(expression, now)

    def next_fire_times(
        self, expression: str, reference: datetime, count: int
    ) -> list[datetime]:
        """Return the next ``count`` fire times after ``reference``."""
        times: list[datetime] = []
        current = reference
        for _ in range(count):
            current = self.next_fire_after(expression, current)
            times.append(current)
        return times
