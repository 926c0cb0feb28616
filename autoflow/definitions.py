"""Load workflows, tasks and triggers from a YAML definitions file."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Union

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .contracts import TaskAction, TriggerKind, WorkflowDefinition
from .errors import ValidationError

if TYPE_CHECKING:
    from .runtime import AutomationRuntime


class TaskEntry(BaseModel):
    """A task whose ``workflow`` action may name a workflow from the same file."""

    name: str
    tenant_id: str
    schedule: str
    action: TaskAction
    description: str = ""
    active: bool = True


class TriggerEntry(BaseModel):
    """A trigger bound to a workflow by name."""

    name: str
    tenant_id: str
    kind: TriggerKind
    workflow: str
    config: Dict[str, Any] = Field(default_factory=dict)
    active: bool = True


class DefinitionBundle(BaseModel):
    workflows: List[WorkflowDefinition] = Field(default_factory=list)
    tasks: List[TaskEntry] = Field(default_factory=list)
    triggers: List[TriggerEntry] = Field(default_factory=list)


class AppliedDefinitions(BaseModel):
    """Ids of created entities keyed by their names."""

    workflows: Dict[str, str] = Field(default_factory=dict)
    tasks: Dict[str, str] = Field(default_factory=dict)
    triggers: Dict[str, str] = Field(default_factory=dict)


def load_definitions(path: Union[str, Path]) -> DefinitionBundle:
    """Parse a definitions file.

    Raises:
        ValidationError: the file is not valid YAML or does not match the schema.
    """
    try:
        data = yaml.safe_load(Path(path).read_text()) or {}
        return DefinitionBundle.model_validate(data)
    except yaml.YAMLError as exc:
        raise ValidationError(f"Invalid YAML in {path}: {exc}") from exc
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid definitions in {path}: {exc}") from exc


def _resolve(names: Dict[str, str], name: str, owner: str) -> str:
    try:
        return names[name]
    except KeyError:
        raise ValidationError(f"{owner} references unknown workflow {name!r}") from None


async def apply_definitions(
    runtime: "AutomationRuntime", bundle: DefinitionBundle
) -> AppliedDefinitions:
    """Create every definition of ``bundle`` in ``runtime``.

    Task actions of kind ``workflow`` may give ``workflow`` (a name from the
    bundle) instead of ``workflow_id``.
    """
    applied = AppliedDefinitions()
    for definition in bundle.workflows:
        workflow = await runtime.engine.create_workflow(definition)
        applied.workflows[workflow.name] = workflow.id

    for entry in bundle.tasks:
        action = entry.action.model_copy(deep=True)
        if action.kind == "workflow" and "workflow" in action.config:
            name = action.config.pop("workflow")
            action.config["workflow_id"] = _resolve(
                applied.workflows, name, f"Task {entry.name!r}"
            )
        task = await runtime.scheduler.create_task(
            entry.model_copy(update={"action": action}).model_dump()
        )
        applied.tasks[task.name] = task.id

    for entry in bundle.triggers:
        workflow_id = _resolve(applied.workflows, entry.workflow, f"Trigger {entry.name!r}")
        trigger = await runtime.triggers.create_trigger(
            {**entry.model_dump(exclude={"workflow"}), "workflow_id": workflow_id}
        )
        applied.triggers[trigger.name] = trigger.id
    return applied
