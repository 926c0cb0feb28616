"""Workflow execution engine."""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .actions import ActionDispatcher, builtin_step_actions
from .config import EngineConfig
from .constants import CONDITION_OPERATORS, CONDITION_RESULT_KEY
from .contracts import (
    ExecutionStatus,
    Step,
    Workflow,
    WorkflowDefinition,
    WorkflowExecution,
    utcnow,
)
from .errors import InactiveError, NotFoundError, StepExecutionError, ValidationError
from .persistence import InMemoryWorkflowRepository, WorkflowRepository
from .workflow_templates import WORKFLOW_TEMPLATES

logger = logging.getLogger(__name__)


def evaluate_condition(operator: str, actual: Any, expected: Any) -> bool:
    """Compare a context value against a condition's configured value.

    Values that cannot be ordered against each other compare as ``False``.
    """
    if operator == "equals":
        return actual == expected
    if operator == "not_equals":
        return actual != expected
    if operator == "contains":
        if actual is None:
            return False
        if isinstance(actual, (list, tuple, set, dict)):
            return expected in actual
        return str(expected) in str(actual)
    try:
        if operator == "greater_than":
            return actual > expected
        if operator == "less_than":
            return actual < expected
    except TypeError:
        return False
    raise ValueError(f"Unknown condition operator {operator!r}")


def validate_workflow(definition: WorkflowDefinition, actions: ActionDispatcher) -> None:
    """Check graph integrity and per-kind step configuration.

    Raises:
        ValidationError: listing every problem found.
    """
    problems: list[str] = []
    seen: set[str] = set()
    for step in definition.steps:
        if not step.id:
            problems.append("step ids must be non-empty")
        elif step.id in seen:
            problems.append(f"duplicate step id {step.id!r}")
        seen.add(step.id)

    for step in definition.steps:
        for target in step.next_steps:
            if target not in seen:
                problems.append(f"step {step.id!r} references unknown step {target!r}")
        problems.extend(_validate_step_config(step, actions))

    if problems:
        raise ValidationError(
            f"Invalid workflow {definition.name!r}: " + "; ".join(problems)
        )


def _validate_step_config(step: Step, actions: ActionDispatcher) -> list[str]:
    config = step.config
    if step.kind == "condition":
        problems = []
        if not isinstance(config.get("field"), str):
            problems.append(f"condition {step.id!r} needs a 'field'")
        if config.get("operator") not in CONDITION_OPERATORS:
            problems.append(
                f"condition {step.id!r} has unknown operator {config.get('operator')!r}"
            )
        if "value" not in config:
            problems.append(f"condition {step.id!r} needs a 'value'")
        return problems

    if step.kind == "delay":
        duration = config.get("duration", 0)
        if isinstance(duration, bool) or not isinstance(duration, (int, float)) or duration < 0:
            return [f"delay {step.id!r} needs a non-negative numeric 'duration'"]
        return []

    if step.kind == "action":
        action_type = config.get("type")
        if not actions.has(action_type):
            return [f"action {step.id!r} has unknown type {action_type!r}"]
        missing = actions.get(action_type).validate(config)
        return [f"action {step.id!r} is missing {key!r}" for key in missing]

    return []


class WorkflowEngine:
    """Stores workflow definitions and runs them step by step.

    Each execution runs on its own asyncio task against a private copy of its
    initial context. Callers get snapshots; the live record is only touched by
    the interpreter loop.
    """

    def __init__(
        self,
        actions: Optional[ActionDispatcher] = None,
        repository: Optional[WorkflowRepository] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        self.actions = actions or ActionDispatcher(builtin_step_actions())
        self._repository = repository or InMemoryWorkflowRepository()
        self._config = config or EngineConfig()
        self._running: Dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Definitions
    async def create_workflow(
        self, definition: Union[WorkflowDefinition, Mapping[str, Any]]
    ) -> Workflow:
        """Validate and store a new workflow."""
        definition = self._coerce(definition)
        validate_workflow(definition, self.actions)
        workflow = Workflow(**definition.model_dump())
        await self._repository.save_workflow(workflow)
        logger.info(
            f"Created workflow {workflow.id} ({workflow.name}) for tenant {workflow.tenant_id}"
        )
        return workflow.model_copy(deep=True)

    async def update_workflow(self, workflow_id: str, **changes: Any) -> Workflow:
        """Replace fields of a stored workflow after revalidating it.

        Executions already running keep the version they started with.
        """
        current = await self._load(workflow_id)
        fields = current.model_dump(include=set(WorkflowDefinition.model_fields))
        fields.update(changes)
        definition = self._coerce(fields)
        validate_workflow(definition, self.actions)
        updated = Workflow(
            **definition.model_dump(),
            id=current.id,
            created_at=current.created_at,
            updated_at=utcnow(),
        )
        await self._repository.save_workflow(updated)
        return updated.model_copy(deep=True)

    async def create_workflow_from_template(
        self, template: str, tenant_id: str, name: Optional[str] = None
    ) -> Workflow:
        if template not in WORKFLOW_TEMPLATES:
            raise NotFoundError("Workflow template", template)
        data = copy.deepcopy(WORKFLOW_TEMPLATES[template])
        data["tenant_id"] = tenant_id
        if name:
            data["name"] = name
        return await self.create_workflow(data)

    async def get_workflow(self, workflow_id: str) -> Workflow:
        return (await self._load(workflow_id)).model_copy(deep=True)

    async def list_workflows(self, tenant_id: str) -> list[Workflow]:
        workflows = await self._repository.list_workflows(tenant_id)
        return [wf.model_copy(deep=True) for wf in workflows]

    # ------------------------------------------------------------------
    # Executions
    async def execute_workflow(
        self, workflow_id: str, context: Optional[Mapping[str, Any]] = None
    ) -> WorkflowExecution:
        """Start a run of ``workflow_id`` and return immediately.

        Returns:
            Snapshot of the new execution in ``running`` state. Use
            :meth:`wait_for_execution` to obtain the terminal record.

        Raises:
            NotFoundError: unknown workflow.
            InactiveError: the workflow is disabled.
        """
        workflow = await self._load(workflow_id)
        if not workflow.active:
            raise InactiveError("Workflow", workflow_id)

        execution = WorkflowExecution(
            workflow_id=workflow.id,
            tenant_id=workflow.tenant_id,
            current_step=workflow.first_step_id,
            context=copy.deepcopy(dict(context or {})),
        )
        await self._repository.save_execution(execution)
        snapshot = execution.model_copy(deep=True)

        task = asyncio.get_running_loop().create_task(
            self._run(execution, workflow.model_copy(deep=True)),
            name=f"workflow:{execution.id}",
        )
        self._running[execution.id] = task
        task.add_done_callback(lambda _: self._running.pop(execution.id, None))
        logger.info(f"Started execution {execution.id} of workflow {workflow.id}")
        return snapshot

    async def wait_for_execution(
        self, execution_id: str, timeout: Optional[float] = None
    ) -> WorkflowExecution:
        """Wait until ``execution_id`` is terminal and return its snapshot."""
        task = self._running.get(execution_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        return await self.get_execution(execution_id)

    async def get_execution(self, execution_id: str) -> WorkflowExecution:
        execution = await self._repository.get_execution(execution_id)
        if execution is None:
            raise NotFoundError("Execution", execution_id)
        return execution.model_copy(deep=True)

    async def list_executions(self, workflow_id: str) -> list[WorkflowExecution]:
        """Return the executions of ``workflow_id`` newest-first."""
        executions = await self._repository.list_executions(workflow_id)
        return [e.model_copy(deep=True) for e in executions]

    @property
    def running_count(self) -> int:
        return len(self._running)

    async def close(self) -> None:
        """Wait for every in-flight execution to settle."""
        if self._running:
            await asyncio.gather(*list(self._running.values()), return_exceptions=True)

    # ------------------------------------------------------------------
    # Interpreter
    async def _run(self, execution: WorkflowExecution, workflow: Workflow) -> None:
        try:
            while execution.current_step:
                step = workflow.get_step(execution.current_step)
                if step is None:
                    break
                if execution.steps_run >= self._config.max_steps:
                    raise StepExecutionError(
                        step.id, f"step limit of {self._config.max_steps} exceeded"
                    )
                next_step = await self._run_step(step, execution)
                execution.steps_run += 1
                execution.current_step = next_step
                await self._repository.save_execution(execution)
        except StepExecutionError as exc:
            execution.status = ExecutionStatus.FAILED
            execution.error = str(exc)
            logger.warning(f"Execution {execution.id} of workflow {workflow.id} failed: {exc}")
        else:
            execution.status = ExecutionStatus.COMPLETED
            execution.current_step = None
            logger.info(f"Execution {execution.id} of workflow {workflow.id} completed")
        execution.completed_at = utcnow()
        await self._repository.save_execution(execution)

    async def _run_step(self, step: Step, execution: WorkflowExecution) -> Optional[str]:
        """Run one step and return the id of the step to run next, if any."""
        try:
            if step.kind == "condition":
                outcome = evaluate_condition(
                    step.config["operator"],
                    execution.context.get(step.config["field"]),
                    step.config["value"],
                )
                execution.context[CONDITION_RESULT_KEY] = outcome
                branch = 0 if outcome else 1
                return step.next_steps[branch] if len(step.next_steps) > branch else None

            if step.kind == "delay":
                duration = step.config.get("duration", self._config.default_delay_seconds)
                await asyncio.sleep(duration)
            elif step.kind == "action":
                config = {k: v for k, v in step.config.items() if k != "type"}
                result = await self.actions.dispatch(
                    step.config["type"], config, execution.context
                )
                if result is not None:
                    if not isinstance(result, Mapping):
                        raise TypeError(
                            f"action returned {type(result).__name__}, expected a mapping"
                        )
                    execution.context.update(copy.deepcopy(dict(result)))
        except StepExecutionError:
            raise
        except Exception as exc:
            raise StepExecutionError(step.id, str(exc) or type(exc).__name__) from exc

        return step.next_steps[0] if step.next_steps else None

    # ------------------------------------------------------------------
    async def _load(self, workflow_id: str) -> Workflow:
        workflow = await self._repository.get_workflow(workflow_id)
        if workflow is None:
            raise NotFoundError("Workflow", workflow_id)
        return workflow

    @staticmethod
    def _coerce(
        definition: Union[WorkflowDefinition, Mapping[str, Any]]
    ) -> WorkflowDefinition:
        if isinstance(definition, WorkflowDefinition):
            return WorkflowDefinition(
                **definition.model_dump(include=set(WorkflowDefinition.model_fields))
            )
        try:
            return WorkflowDefinition.model_validate(dict(definition))
        except PydanticValidationError as exc:
            raise ValidationError(f"Malformed workflow definition: {exc}") from exc
