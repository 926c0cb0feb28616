"""Repository abstractions for automation state."""

from __future__ import annotations

from typing import Optional, Protocol

from ..contracts import (
    ScheduledTask,
    TaskExecution,
    Trigger,
    TriggerEvent,
    Workflow,
    WorkflowExecution,
)


class WorkflowRepository(Protocol):
    """Storage for workflow definitions and their executions."""

    async def save_workflow(self, workflow: Workflow) -> None:
        """Insert or replace a workflow."""

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        """Retrieve a workflow by id."""

    async def list_workflows(self, tenant_id: Optional[str] = None) -> list[Workflow]:
        """Return workflows, optionally filtered by tenant."""

    async def save_execution(self, execution: WorkflowExecution) -> None:
        """Insert or replace an execution. Assigns ``sequence`` on first save."""

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        """Retrieve an execution by id."""

    async def list_executions(self, workflow_id: str) -> list[WorkflowExecution]:
        """Return executions of ``workflow_id`` newest-first."""


class TaskRepository(Protocol):
    """Storage for scheduled tasks and their firing history."""

    async def save_task(self, task: ScheduledTask) -> None:
        """Insert or replace a task."""

    async def get_task(self, task_id: str) -> Optional[ScheduledTask]:
        """Retrieve a task by id."""

    async def list_tasks(self, tenant_id: Optional[str] = None) -> list[ScheduledTask]:
        """Return tasks, optionally filtered by tenant."""

    async def delete_task(self, task_id: str) -> None:
        """Remove a task. History is kept."""

    async def append_execution(self, execution: TaskExecution) -> None:
        """Record a new firing. Assigns ``sequence``."""

    async def list_executions(self, task_id: str) -> list[TaskExecution]:
        """Return firings of ``task_id`` newest-first."""


class TriggerRepository(Protocol):
    """Storage for triggers and their event history."""

    async def save_trigger(self, trigger: Trigger) -> None:
        """Insert or replace a trigger."""

    async def get_trigger(self, trigger_id: str) -> Optional[Trigger]:
        """Retrieve a trigger by id."""

    async def list_triggers(self, tenant_id: Optional[str] = None) -> list[Trigger]:
        """Return triggers, optionally filtered by tenant."""

    async def delete_trigger(self, trigger_id: str) -> None:
        """Remove a trigger. History is kept."""

    async def append_event(self, event: TriggerEvent) -> None:
        """Record a new trigger event. Assigns ``sequence``."""

    async def save_event(self, event: TriggerEvent) -> None:
        """Persist processing updates of an already recorded event."""

    async def list_events(self, trigger_id: str) -> list[TriggerEvent]:
        """Return events of ``trigger_id`` newest-first."""
