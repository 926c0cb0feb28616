"""Error taxonomy for the automation core."""

from __future__ import annotations


class AutomationError(Exception):
    """Base class for all autoflow errors."""


class ValidationError(AutomationError):
    """A definition (workflow graph, schedule, trigger config) is malformed."""


class NotFoundError(AutomationError):
    """An operation referenced an unknown workflow, task or trigger."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InactiveError(AutomationError):
    """An operation required an active entity but it was disabled."""

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} {entity_id} is inactive")
        self.entity = entity
        self.entity_id = entity_id


class StepExecutionError(AutomationError):
    """A workflow step failed. Captured on the execution, never raised past the engine."""

    def __init__(self, step_id: str, message: str) -> None:
        super().__init__(f"Step {step_id} failed: {message}")
        self.step_id = step_id


class DispatchError(AutomationError):
    """The action behind a task firing or trigger activation failed."""
