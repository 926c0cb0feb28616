"""Process-level composition of the automation managers."""

from __future__ import annotations

from typing import Optional

import httpx

from .actions import (
    ActionDispatcher,
    EmitEventAction,
    FunctionRegistry,
    HttpCallAction,
    InMemoryRecordSink,
    LoggingMailer,
    Mailer,
    RecordSink,
    builtin_step_actions,
    builtin_task_actions,
)
from .config import AutoflowConfig
from .contracts import utcnow
from .engine import WorkflowEngine
from .scheduler import TaskScheduler
from .schedule import get_evaluator
from .timers import Clock
from .triggers import TriggerManager


class AutomationRuntime:
    """Builds the engine, scheduler and trigger manager once per process.

    Request-handling code receives this object (or one of its managers)
    instead of reaching for module-level singletons.
    """

    def __init__(
        self,
        config: Optional[AutoflowConfig] = None,
        *,
        mailer: Optional[Mailer] = None,
        record_sink: Optional[RecordSink] = None,
        functions: Optional[FunctionRegistry] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = utcnow,
    ) -> None:
        self.config = config or AutoflowConfig()
        self.evaluator = get_evaluator(self.config)
        self.functions = functions or FunctionRegistry()
        self.mailer = mailer or LoggingMailer()
        self.record_sink = record_sink or InMemoryRecordSink()

        timeout = self.config.http.timeout
        step_actions = ActionDispatcher(
            builtin_step_actions(
                self.mailer,
                self.record_sink,
                HttpCallAction("POST", timeout, http_transport),
            )
        )
        self.engine = WorkflowEngine(step_actions, config=self.config.engine)
        self.scheduler = TaskScheduler(
            self.engine,
            actions=ActionDispatcher(
                builtin_task_actions(
                    self.engine,
                    self.functions,
                    HttpCallAction("GET", timeout, http_transport),
                )
            ),
            functions=self.functions,
            evaluator=self.evaluator,
            clock=clock,
        )
        self.triggers = TriggerManager(self.engine, evaluator=self.evaluator, clock=clock)
        step_actions.register("emit_event", EmitEventAction(self.triggers.handle_custom_event))

    async def close(self) -> None:
        """Stop timers first, then let running executions settle."""
        await self.triggers.close()
        await self.scheduler.close()
        await self.engine.close()

    async def __aenter__(self) -> "AutomationRuntime":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
