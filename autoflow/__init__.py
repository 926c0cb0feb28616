"""autoflow: trigger- and time-driven workflow automation for multi-tenant platforms."""

from .contracts import (
    ExecutionStatus,
    ScheduledTask,
    Step,
    TaskAction,
    TaskDefinition,
    TaskExecution,
    TaskStatus,
    Trigger,
    TriggerDefinition,
    TriggerEvent,
    Workflow,
    WorkflowDefinition,
    WorkflowExecution,
)
from .engine import WorkflowEngine
from .errors import (
    AutomationError,
    DispatchError,
    InactiveError,
    NotFoundError,
    StepExecutionError,
    ValidationError,
)
from .runtime import AutomationRuntime
from .scheduler import TaskScheduler
from .triggers import TriggerManager

__version__ = "0.1.0"
__all__ = [
    "AutomationError",
    "AutomationRuntime",
    "DispatchError",
    "ExecutionStatus",
    "InactiveError",
    "NotFoundError",
    "ScheduledTask",
    "Step",
    "StepExecutionError",
    "TaskAction",
    "TaskDefinition",
    "TaskExecution",
    "TaskScheduler",
    "TaskStatus",
    "Trigger",
    "TriggerDefinition",
    "TriggerEvent",
    "TriggerManager",
    "ValidationError",
    "Workflow",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowExecution",
]
