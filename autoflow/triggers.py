"""Trigger manager: turns webhooks, timers and events into workflow runs."""

from __future__ import annotations

import copy
import logging
from datetime import datetime
from functools import partial
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .constants import DATABASE_ACTIONS
from .contracts import Trigger, TriggerDefinition, TriggerEvent, utcnow
from .errors import NotFoundError, ValidationError
from .persistence import InMemoryTriggerRepository, TriggerRepository
from .schedule import ScheduleEvaluator, get_evaluator, interval_expression
from .timers import Clock, TimerPool, advance_past

if TYPE_CHECKING:
    from .engine import WorkflowEngine

logger = logging.getLogger(__name__)


def normalize_trigger_config(
    kind: str, config: Mapping[str, Any], evaluator: ScheduleEvaluator
) -> Dict[str, Any]:
    """Validate ``config`` for a trigger of ``kind`` and return a normalized copy.

    Schedule triggers written as ``{interval, unit}`` get an ``expression``.
    """
    config = dict(config)
    if kind == "webhook":
        if not config.get("endpoint"):
            raise ValidationError("Webhook trigger needs an 'endpoint'")
    elif kind == "event":
        if not config.get("event_name"):
            raise ValidationError("Event trigger needs an 'event_name'")
    elif kind == "database":
        if not config.get("table"):
            raise ValidationError("Database trigger needs a 'table'")
        if config.get("action") not in DATABASE_ACTIONS:
            raise ValidationError(
                f"Database trigger action must be one of {', '.join(DATABASE_ACTIONS)}"
            )
    elif kind == "schedule":
        if "expression" not in config:
            if "interval" not in config or "unit" not in config:
                raise ValidationError(
                    "Schedule trigger needs an 'expression' or 'interval' and 'unit'"
                )
            config["expression"] = interval_expression(config["interval"], config["unit"])
        evaluator.validate(config["expression"])
    return config


class TriggerManager:
    """Owns triggers, records their activations and starts bound workflows."""

    def __init__(
        self,
        engine: "WorkflowEngine",
        evaluator: Optional[ScheduleEvaluator] = None,
        repository: Optional[TriggerRepository] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._engine = engine
        self._evaluator = evaluator or get_evaluator()
        self._repository = repository or InMemoryTriggerRepository()
        self._clock = clock
        self._timers = TimerPool(self._evaluator, clock)

    async def create_trigger(
        self, definition: Union[TriggerDefinition, Mapping[str, Any]]
    ) -> Trigger:
        """Validate and store a trigger. Active schedule triggers are armed.

        Raises:
            ValidationError: malformed trigger config.
        """
        definition = self._coerce(definition)
        config = normalize_trigger_config(definition.kind, definition.config, self._evaluator)
        trigger = Trigger(
            **definition.model_dump(exclude={"config"}),
            config=config,
            created_at=self._clock(),
        )
        await self._repository.save_trigger(trigger)
        if trigger.active:
            self._arm(trigger)
        logger.info(f"Created {trigger.kind} trigger {trigger.id} ({trigger.name})")
        return trigger.model_copy(deep=True)

    async def fire(
        self, trigger_id: str, payload: Optional[Mapping[str, Any]] = None
    ) -> Optional[TriggerEvent]:
        """Record an activation of ``trigger_id`` and start its workflow.

        Unknown and inactive triggers are ignored and return ``None``. A
        workflow that cannot be started is recorded on the event, not raised.
        """
        trigger = await self._repository.get_trigger(trigger_id)
        if trigger is None or not trigger.active:
            logger.debug(f"Ignoring fire of unknown or inactive trigger {trigger_id}")
            return None

        event = TriggerEvent(
            trigger_id=trigger.id,
            payload=copy.deepcopy(dict(payload or {})),
            timestamp=self._clock(),
        )
        await self._repository.append_event(event)
        trigger.last_triggered = event.timestamp
        await self._repository.save_trigger(trigger)

        context = {
            **copy.deepcopy(event.payload),
            "tenant_id": trigger.tenant_id,
            "trigger_id": trigger.id,
        }
        try:
            execution = await self._engine.execute_workflow(trigger.workflow_id, context)
        except Exception as exc:
            event.error = str(exc) or type(exc).__name__
            logger.warning(
                f"Trigger {trigger.id} could not start workflow {trigger.workflow_id}: "
                f"{event.error}"
            )
        else:
            event.execution_id = execution.id
            event.processed = True
            logger.info(
                f"Trigger {trigger.name} started execution {execution.id} "
                f"of workflow {trigger.workflow_id}"
            )
        await self._repository.save_event(event)
        return event.model_copy(deep=True)

    async def handle_webhook(
        self,
        endpoint: str,
        payload: Optional[Mapping[str, Any]] = None,
        tenant_id: Optional[str] = None,
    ) -> list[TriggerEvent]:
        """Fire every active webhook trigger configured for ``endpoint``."""
        return await self._fire_matching(
            "webhook",
            lambda config: config.get("endpoint") == endpoint,
            dict(payload or {}),
            tenant_id,
        )

    async def handle_database_event(
        self,
        table: str,
        action: str,
        record: Mapping[str, Any],
        tenant_id: Optional[str] = None,
    ) -> list[TriggerEvent]:
        """Fire every active database trigger watching ``action`` on ``table``."""
        return await self._fire_matching(
            "database",
            lambda config: config.get("table") == table and config.get("action") == action,
            {"table": table, "action": action, "record": dict(record)},
            tenant_id,
        )

    async def handle_custom_event(
        self,
        event_name: str,
        payload: Optional[Mapping[str, Any]] = None,
        tenant_id: Optional[str] = None,
    ) -> list[TriggerEvent]:
        """Fire every active event trigger listening for ``event_name``."""
        return await self._fire_matching(
            "event",
            lambda config: config.get("event_name") == event_name,
            dict(payload or {}),
            tenant_id,
        )

    async def deactivate_trigger(self, trigger_id: str) -> Trigger:
        """Disable ``trigger_id`` and release its timer. Idempotent."""
        trigger = await self._load(trigger_id)
        self._timers.release(trigger.id)
        if trigger.active:
            trigger.active = False
            await self._repository.save_trigger(trigger)
            logger.info(f"Deactivated trigger {trigger.id}")
        return trigger.model_copy(deep=True)

    async def activate_trigger(self, trigger_id: str) -> Trigger:
        """Re-enable ``trigger_id``; schedule triggers keep their original anchor."""
        trigger = await self._load(trigger_id)
        if not trigger.active:
            trigger.active = True
            await self._repository.save_trigger(trigger)
            logger.info(f"Activated trigger {trigger.id}")
        self._arm(trigger)
        return trigger.model_copy(deep=True)

    async def delete_trigger(self, trigger_id: str) -> None:
        trigger = await self._load(trigger_id)
        self._timers.release(trigger.id)
        await self._repository.delete_trigger(trigger.id)
        logger.info(f"Deleted trigger {trigger.id}")

    async def get_trigger(self, trigger_id: str) -> Trigger:
        return (await self._load(trigger_id)).model_copy(deep=True)

    async def list_triggers(self, tenant_id: str) -> list[Trigger]:
        triggers = await self._repository.list_triggers(tenant_id)
        return [t.model_copy(deep=True) for t in triggers]

    async def list_trigger_events(self, trigger_id: str) -> list[TriggerEvent]:
        """Return the events of ``trigger_id`` newest-first."""
        events = await self._repository.list_events(trigger_id)
        return [e.model_copy(deep=True) for e in events]

    def is_armed(self, trigger_id: str) -> bool:
        return self._timers.is_armed(trigger_id)

    def next_fire(self, trigger_id: str) -> Optional[datetime]:
        return self._timers.next_fire(trigger_id)

    async def close(self) -> None:
        """Release all timers and wait for running activations."""
        await self._timers.close()

    # ------------------------------------------------------------------
    async def _fire_matching(
        self,
        kind: str,
        matches: Callable[[Mapping[str, Any]], bool],
        payload: Dict[str, Any],
        tenant_id: Optional[str],
    ) -> list[TriggerEvent]:
        candidates = await self._repository.list_triggers(tenant_id)
        events = []
        for trigger in candidates:
            if trigger.kind != kind or not trigger.active or not matches(trigger.config):
                continue
            event = await self.fire(trigger.id, payload)
            if event is not None:
                events.append(event)
        return events

    def _arm(self, trigger: Trigger) -> None:
        if trigger.kind != "schedule" or not trigger.active:
            return
        expression = trigger.config["expression"]
        first_fire = advance_past(
            self._evaluator, expression, trigger.created_at, self._clock()
        )
        self._timers.arm(trigger.id, expression, first_fire, partial(self._on_fire, trigger.id))

    def _on_fire(self, trigger_id: str, fired_at: datetime) -> None:
        self._timers.spawn(
            self._fire_scheduled(trigger_id, fired_at), name=f"trigger:{trigger_id}"
        )

    async def _fire_scheduled(self, trigger_id: str, fired_at: datetime) -> None:
        try:
            await self.fire(trigger_id, {"scheduled_at": fired_at.isoformat()})
        except Exception:
            logger.exception(f"Scheduled activation of trigger {trigger_id} failed")

    async def _load(self, trigger_id: str) -> Trigger:
        trigger = await self._repository.get_trigger(trigger_id)
        if trigger is None:
            raise NotFoundError("Trigger", trigger_id)
        return trigger

    @staticmethod
    def _coerce(
        definition: Union[TriggerDefinition, Mapping[str, Any]]
    ) -> TriggerDefinition:
        if isinstance(definition, TriggerDefinition):
            return TriggerDefinition(
                **definition.model_dump(include=set(TriggerDefinition.model_fields))
            )
        try:
            return TriggerDefinition.model_validate(dict(definition))
        except PydanticValidationError as exc:
            raise ValidationError(f"Malformed trigger definition: {exc}") from exc
