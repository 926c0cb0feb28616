"""In-memory implementations of the automation repositories."""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional

from ..contracts import (
    ScheduledTask,
    TaskExecution,
    Trigger,
    TriggerEvent,
    Workflow,
    WorkflowExecution,
)
from .repository import TaskRepository, TriggerRepository, WorkflowRepository


class _SequenceCounter:
    """Hands out a strictly increasing number per owner id."""

    def __init__(self) -> None:
        self._last: Dict[str, int] = defaultdict(int)

    def next(self, owner_id: str) -> int:
        self._last[owner_id] += 1
        return self._last[owner_id]


def _newest_first(records: list) -> list:
    return sorted(records, key=lambda r: r.sequence or 0, reverse=True)


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflows and executions in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, Workflow] = {}
        self._executions: Dict[str, WorkflowExecution] = {}
        self._sequences = _SequenceCounter()

    async def save_workflow(self, workflow: Workflow) -> None:
        self._workflows[workflow.id] = workflow

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        return self._workflows.get(workflow_id)

    async def list_workflows(self, tenant_id: Optional[str] = None) -> list[Workflow]:
        return [
            wf
            for wf in self._workflows.values()
            if tenant_id is None or wf.tenant_id == tenant_id
        ]

    async def save_execution(self, execution: WorkflowExecution) -> None:
        if execution.sequence is None:
            execution.sequence = self._sequences.next(execution.workflow_id)
        self._executions[execution.id] = execution

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        return self._executions.get(execution_id)

    async def list_executions(self, workflow_id: str) -> list[WorkflowExecution]:
        return _newest_first(
            [e for e in self._executions.values() if e.workflow_id == workflow_id]
        )


class InMemoryTaskRepository(TaskRepository):
    """Store scheduled tasks and their firings in local memory."""

    def __init__(self) -> None:
        self._tasks: Dict[str, ScheduledTask] = {}
        self._executions: List[TaskExecution] = []
        self._sequences = _SequenceCounter()

    async def save_task(self, task: ScheduledTask) -> None:
        self._tasks[task.id] = task

    async def get_task(self, task_id: str) -> Optional[ScheduledTask]:
        return self._tasks.get(task_id)

    async def list_tasks(self, tenant_id: Optional[str] = None) -> list[ScheduledTask]:
        return [
            t
            for t in self._tasks.values()
            if tenant_id is None or t.tenant_id == tenant_id
        ]

    async def delete_task(self, task_id: str) -> None:
        self._tasks.pop(task_id, None)

    async def append_execution(self, execution: TaskExecution) -> None:
        execution.sequence = self._sequences.next(execution.task_id)
        self._executions.append(execution)

    async def list_executions(self, task_id: str) -> list[TaskExecution]:
        return _newest_first([e for e in self._executions if e.task_id == task_id])


class InMemoryTriggerRepository(TriggerRepository):
    """Store triggers and their events in local memory."""

    def __init__(self) -> None:
        self._triggers: Dict[str, Trigger] = {}
        self._events: List[TriggerEvent] = []
        self._sequences = _SequenceCounter()

    async def save_trigger(self, trigger: Trigger) -> None:
        self._triggers[trigger.id] = trigger

    async def get_trigger(self, trigger_id: str) -> Optional[Trigger]:
        return self._triggers.get(trigger_id)

    async def list_triggers(self, tenant_id: Optional[str] = None) -> list[Trigger]:
        return [
            t
            for t in self._triggers.values()
            if tenant_id is None or t.tenant_id == tenant_id
        ]

    async def delete_trigger(self, trigger_id: str) -> None:
        self._triggers.pop(trigger_id, None)

    async def append_event(self, event: TriggerEvent) -> None:
        event.sequence = self._sequences.next(event.trigger_id)
        self._events.append(event)

    async def save_event(self, event: TriggerEvent) -> None:
        for index, existing in enumerate(self._events):
            if existing.id == event.id:
                self._events[index] = event
                return

    async def list_events(self, trigger_id: str) -> list[TriggerEvent]:
        return _newest_first([e for e in self._events if e.trigger_id == trigger_id])
