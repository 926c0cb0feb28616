"""Recurring task scheduler."""

from __future__ import annotations

import logging
from datetime import datetime
from functools import partial
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .actions import ActionDispatcher, FunctionRegistry, builtin_task_actions
from .contracts import (
    ScheduledTask,
    TaskDefinition,
    TaskExecution,
    TaskStatus,
    utcnow,
)
from .errors import NotFoundError, ValidationError
from .persistence import InMemoryTaskRepository, TaskRepository
from .schedule import ScheduleEvaluator, get_evaluator
from .timers import Clock, TimerPool, advance_past

if TYPE_CHECKING:
    from .engine import WorkflowEngine

logger = logging.getLogger(__name__)


class TaskScheduler:
    """Fires scheduled tasks on their recurrence and records every firing.

    At most one execution per task runs at a time: a firing that arrives while
    the previous one is still running is recorded as ``skipped``.
    """

    def __init__(
        self,
        engine: "WorkflowEngine",
        actions: Optional[ActionDispatcher] = None,
        functions: Optional[FunctionRegistry] = None,
        evaluator: Optional[ScheduleEvaluator] = None,
        repository: Optional[TaskRepository] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.functions = functions or FunctionRegistry()
        self.actions = actions or ActionDispatcher(
            builtin_task_actions(engine, self.functions)
        )
        self._evaluator = evaluator or get_evaluator()
        self._repository = repository or InMemoryTaskRepository()
        self._clock = clock
        self._timers = TimerPool(self._evaluator, clock)
        # task id -> id of its running execution
        self._in_flight: Dict[str, str] = {}

    async def create_task(
        self, definition: Union[TaskDefinition, Mapping[str, Any]]
    ) -> ScheduledTask:
        """Validate and store a task, arming its timer when active.

        Raises:
            ValidationError: unparsable schedule or malformed action.
        """
        definition = self._coerce(definition)
        self._evaluator.validate(definition.schedule)
        kind = definition.action.kind
        if not self.actions.has(kind):
            raise ValidationError(f"No handler for task action {kind!r}")
        missing = self.actions.get(kind).validate(definition.action.config)
        if missing:
            raise ValidationError(
                f"Task action {kind!r} is missing {', '.join(missing)}"
            )

        now = self._clock()
        task = ScheduledTask(**definition.model_dump(), created_at=now)
        task.next_run = self._evaluator.next_fire_after(task.schedule, now)
        await self._repository.save_task(task)
        if task.active:
            self._arm(task)
        logger.info(f"Created task {task.id} ({task.name}) next run {task.next_run}")
        return task.model_copy(deep=True)

    async def execute_task(
        self, task_id: str, scheduled_for: Optional[datetime] = None
    ) -> TaskExecution:
        """Run ``task_id`` once and return the finished record.

        Raises:
            NotFoundError: unknown task.
        """
        task = await self._load(task_id)
        running_id = self._in_flight.get(task.id)
        if running_id is not None:
            skipped = TaskExecution(
                task_id=task.id,
                status=TaskStatus.SKIPPED,
                scheduled_for=scheduled_for,
                started_at=self._clock(),
                completed_at=self._clock(),
                result={"running_execution_id": running_id},
            )
            await self._repository.append_execution(skipped)
            logger.info(
                f"Skipped firing of task {task.id}: execution {running_id} still running"
            )
            return skipped.model_copy(deep=True)

        execution = TaskExecution(
            task_id=task.id, scheduled_for=scheduled_for, started_at=self._clock()
        )
        self._in_flight[task.id] = execution.id
        try:
            await self._repository.append_execution(execution)
            context = {
                "tenant_id": task.tenant_id,
                "task_id": task.id,
                "scheduled_for": scheduled_for.isoformat() if scheduled_for else None,
            }
            try:
                result = await self.actions.dispatch(
                    task.action.kind, task.action.config, context
                )
            except Exception as exc:
                execution.status = TaskStatus.FAILED
                execution.error = str(exc) or type(exc).__name__
                logger.warning(f"Task {task.id} failed: {execution.error}")
            else:
                execution.status = TaskStatus.COMPLETED
                execution.result = result
            execution.completed_at = self._clock()
            await self._record_run(task.id, execution.completed_at)
        finally:
            self._in_flight.pop(task.id, None)
        return execution.model_copy(deep=True)

    async def pause_task(self, task_id: str) -> ScheduledTask:
        """Stop future firings of ``task_id``. A running firing is not interrupted."""
        task = await self._load(task_id)
        self._timers.release(task.id)
        if task.active:
            task.active = False
            await self._repository.save_task(task)
            logger.info(f"Paused task {task.id}")
        return task.model_copy(deep=True)

    async def resume_task(self, task_id: str) -> ScheduledTask:
        """Re-enable ``task_id`` keeping its original schedule anchor."""
        task = await self._load(task_id)
        if not self._timers.is_armed(task.id):
            now = self._clock()
            anchor = task.next_run or task.created_at
            task.next_run = advance_past(self._evaluator, task.schedule, anchor, now)
            task.active = True
            await self._repository.save_task(task)
            self._arm(task)
            logger.info(f"Resumed task {task.id}, next run {task.next_run}")
        return task.model_copy(deep=True)

    async def delete_task(self, task_id: str) -> None:
        """Remove ``task_id`` and release its timer. History is kept."""
        task = await self._load(task_id)
        self._timers.release(task.id)
        await self._repository.delete_task(task.id)
        logger.info(f"Deleted task {task.id}")

    async def get_task(self, task_id: str) -> ScheduledTask:
        return (await self._load(task_id)).model_copy(deep=True)

    async def list_tasks(self, tenant_id: str) -> list[ScheduledTask]:
        tasks = await self._repository.list_tasks(tenant_id)
        return [t.model_copy(deep=True) for t in tasks]

    async def list_task_executions(self, task_id: str) -> list[TaskExecution]:
        """Return the firings of ``task_id`` newest-first."""
        executions = await self._repository.list_executions(task_id)
        return [e.model_copy(deep=True) for e in executions]

    def is_armed(self, task_id: str) -> bool:
        return self._timers.is_armed(task_id)

    async def close(self) -> None:
        """Release all timers and wait for running firings."""
        await self._timers.close()

    # ------------------------------------------------------------------
    def _arm(self, task: ScheduledTask) -> None:
        self._timers.arm(
            task.id, task.schedule, task.next_run, partial(self._on_fire, task.id)
        )

    def _on_fire(self, task_id: str, fired_at: datetime) -> None:
        self._timers.spawn(self._fire(task_id, fired_at), name=f"task:{task_id}")

    async def _fire(self, task_id: str, fired_at: datetime) -> None:
        try:
            await self.execute_task(task_id, scheduled_for=fired_at)
        except NotFoundError:
            logger.warning(f"Timer fired for deleted task {task_id}")
            self._timers.release(task_id)
        except Exception:
            logger.exception(f"Firing of task {task_id} at {fired_at} failed")

    async def _record_run(self, task_id: str, finished_at: datetime) -> None:
        # Reload: the task may have been paused or deleted while running.
        task = await self._repository.get_task(task_id)
        if task is None:
            return
        task.last_run = finished_at
        task.next_run = self._timers.next_fire(task_id) or task.next_run
        await self._repository.save_task(task)

    async def _load(self, task_id: str) -> ScheduledTask:
        task = await self._repository.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    @staticmethod
    def _coerce(definition: Union[TaskDefinition, Mapping[str, Any]]) -> TaskDefinition:
        if isinstance(definition, TaskDefinition):
            return TaskDefinition(
                **definition.model_dump(include=set(TaskDefinition.model_fields))
            )
        try:
            return TaskDefinition.model_validate(dict(definition))
        except PydanticValidationError as exc:
            raise ValidationError(f"Malformed task definition: {exc}") from exc
