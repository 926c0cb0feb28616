"""Core data contracts for the autoflow automation system."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

StepKind = Literal["trigger", "condition", "action", "delay"]
TaskActionKind = Literal["workflow", "function", "api_call"]
TriggerKind = Literal["webhook", "schedule", "event", "database"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class Step(BaseModel):
    """One node in a workflow graph."""

    id: str
    kind: StepKind
    name: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)
    next_steps: List[str] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return not self.next_steps


class WorkflowDefinition(BaseModel):
    """Authoring payload for a workflow."""

    name: str
    tenant_id: str
    description: str = ""
    active: bool = True
    steps: List[Step] = Field(default_factory=list)


class Workflow(WorkflowDefinition):
    """A stored workflow definition."""

    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def get_step(self, step_id: Optional[str]) -> Optional[Step]:
        """Return the step called ``step_id`` or ``None``."""
        if not step_id:
            return None
        return next((s for s in self.steps if s.id == step_id), None)

    @property
    def first_step_id(self) -> Optional[str]:
        return self.steps[0].id if self.steps else None


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"


class WorkflowExecution(BaseModel):
    """One run of a workflow with its own isolated context."""

    id: str = Field(default_factory=new_id)
    workflow_id: str
    tenant_id: str
    sequence: Optional[int] = None
    status: ExecutionStatus = ExecutionStatus.RUNNING
    current_step: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    steps_run: int = 0
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED)


class TaskAction(BaseModel):
    """What a scheduled task does when it fires."""

    kind: TaskActionKind
    config: Dict[str, Any] = Field(default_factory=dict)


class TaskDefinition(BaseModel):
    """Authoring payload for a scheduled task."""

    name: str
    tenant_id: str
    schedule: str
    action: TaskAction
    description: str = ""
    active: bool = True


class ScheduledTask(TaskDefinition):
    """A stored recurring task."""

    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None


class TaskStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class TaskExecution(BaseModel):
    """One firing of a scheduled task."""

    id: str = Field(default_factory=new_id)
    task_id: str
    sequence: Optional[int] = None
    status: TaskStatus = TaskStatus.RUNNING
    scheduled_for: Optional[datetime] = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    result: Optional[Any] = None


class TriggerDefinition(BaseModel):
    """Authoring payload for a trigger."""

    name: str
    tenant_id: str
    kind: TriggerKind
    workflow_id: str
    config: Dict[str, Any] = Field(default_factory=dict)
    active: bool = True


class Trigger(TriggerDefinition):
    """A stored trigger bound to a workflow."""

    id: str = Field(default_factory=new_id)
    created_at: datetime = Field(default_factory=utcnow)
    last_triggered: Optional[datetime] = None


class TriggerEvent(BaseModel):
    """Record of one trigger activation."""

    id: str = Field(default_factory=new_id)
    trigger_id: str
    sequence: Optional[int] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
    processed: bool = False
    execution_id: Optional[str] = None
    error: Optional[str] = None
