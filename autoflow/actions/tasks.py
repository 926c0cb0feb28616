"""Handlers for scheduled task action kinds."""

from __future__ import annotations

import copy
import inspect
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional

from ..contracts import ExecutionStatus
from ..errors import DispatchError
from .base import ActionHandler
from .http import HttpCallAction

if TYPE_CHECKING:
    from ..engine import WorkflowEngine


class FunctionRegistry:
    """Named callables that ``function`` tasks can invoke.

    Functions are called as ``fn(context, **arguments)`` and may be plain or
    async.
    """

    def __init__(self) -> None:
        self._functions: Dict[str, Callable[..., Any]] = {}

    def register(self, name: str, fn: Optional[Callable[..., Any]] = None):
        """Register ``fn`` under ``name``. Usable as a decorator."""

        def _decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._functions[name] = func
            return func

        if fn is not None:
            return _decorator(fn)
        return _decorator

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    def get(self, name: str) -> Callable[..., Any]:
        try:
            return self._functions[name]
        except KeyError:
            raise DispatchError(f"Function {name!r} is not registered") from None


class CallFunctionAction(ActionHandler):
    required_keys = ("function_name",)

    def __init__(self, registry: FunctionRegistry) -> None:
        self._registry = registry

    async def execute(self, config: Mapping[str, Any], context: Mapping[str, Any]) -> Any:
        fn = self._registry.get(config["function_name"])
        result = fn(dict(context), **dict(config.get("arguments") or {}))
        if inspect.isawaitable(result):
            result = await result
        return result


class RunWorkflowAction(ActionHandler):
    """Start a workflow and, unless ``wait`` is false, wait for its outcome."""

    required_keys = ("workflow_id",)

    def __init__(self, engine: "WorkflowEngine") -> None:
        self._engine = engine

    async def execute(
        self, config: Mapping[str, Any], context: Mapping[str, Any]
    ) -> dict[str, Any]:
        initial = {**context, **copy.deepcopy(dict(config.get("context") or {}))}
        execution = await self._engine.execute_workflow(config["workflow_id"], initial)
        if not config.get("wait", True):
            return {"execution_id": execution.id, "status": execution.status.value}

        final = await self._engine.wait_for_execution(execution.id)
        if final.status == ExecutionStatus.FAILED:
            raise DispatchError(
                f"Workflow {config['workflow_id']} failed: {final.error}"
            )
        return {
            "execution_id": final.id,
            "status": final.status.value,
            "context": final.context,
        }


def builtin_task_actions(
    engine: "WorkflowEngine",
    functions: Optional[FunctionRegistry] = None,
    http: Optional[ActionHandler] = None,
) -> Dict[str, ActionHandler]:
    """Return the handler for each scheduled task action kind."""
    return {
        "workflow": RunWorkflowAction(engine),
        "function": CallFunctionAction(functions or FunctionRegistry()),
        "api_call": http or HttpCallAction(default_method="GET"),
    }
