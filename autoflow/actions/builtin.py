"""Built-in step actions."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Protocol

from ..contracts import new_id, utcnow
from ..errors import DispatchError
from .base import ActionHandler
from .http import HttpCallAction

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    """Collaborator that delivers email."""

    async def send(self, to: str, subject: str, body: str) -> None:
        """Send one message."""


class LoggingMailer:
    """Mailer that only logs, for development and tests."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, str]] = []

    async def send(self, to: str, subject: str, body: str) -> None:
        self.sent.append({"to": to, "subject": subject, "body": body})
        logger.info(f"Email sent to {to}: {subject}")


class RecordSink(Protocol):
    """Collaborator that writes business records for the surrounding platform."""

    async def insert(self, table: str, data: Dict[str, Any]) -> str:
        """Insert a row and return its id."""

    async def update(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Update the row ``record_id`` in ``table``."""


class InMemoryRecordSink:
    """Record sink keeping rows in local memory."""

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}

    async def insert(self, table: str, data: Dict[str, Any]) -> str:
        record_id = new_id()
        self.tables.setdefault(table, {})[record_id] = {"id": record_id, **data}
        return record_id

    async def update(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        rows = self.tables.setdefault(table, {})
        if record_id not in rows:
            raise DispatchError(f"Record {record_id} not found in {table}")
        rows[record_id].update(data)


class SendEmailAction(ActionHandler):
    required_keys = ("to", "subject")

    def __init__(self, mailer: Mailer) -> None:
        self._mailer = mailer

    async def execute(
        self, config: Mapping[str, Any], context: Mapping[str, Any]
    ) -> dict[str, Any]:
        await self._mailer.send(
            str(config["to"]), str(config["subject"]), str(config.get("body", ""))
        )
        return {"email_sent": config["to"]}


class CreateTaskAction(ActionHandler):
    """Create a follow-up task row for the tenant running the workflow."""

    required_keys = ("title",)

    def __init__(self, sink: RecordSink, table: str = "tasks") -> None:
        self._sink = sink
        self.table = table

    async def execute(
        self, config: Mapping[str, Any], context: Mapping[str, Any]
    ) -> dict[str, Any]:
        record_id = await self._sink.insert(
            self.table,
            {
                "tenant_id": context.get("tenant_id"),
                "title": config["title"],
                "description": config.get("description", ""),
                "created_at": utcnow(),
            },
        )
        return {"task_id": record_id}


class UpdateRecordAction(ActionHandler):
    required_keys = ("table", "record_id", "data")

    def __init__(self, sink: RecordSink) -> None:
        self._sink = sink

    async def execute(
        self, config: Mapping[str, Any], context: Mapping[str, Any]
    ) -> dict[str, Any]:
        await self._sink.update(config["table"], str(config["record_id"]), dict(config["data"]))
        return {"record_updated": config["record_id"]}


class SetContextAction(ActionHandler):
    """Merge literal ``values`` into the workflow context."""

    required_keys = ("values",)

    async def execute(
        self, config: Mapping[str, Any], context: Mapping[str, Any]
    ) -> dict[str, Any]:
        return dict(config["values"])


EventEmitter = Callable[..., Awaitable[Any]]


class EmitEventAction(ActionHandler):
    """Raise a custom event so other triggers can react to this workflow."""

    required_keys = ("event_name",)

    def __init__(self, emit: EventEmitter) -> None:
        self._emit = emit

    async def execute(
        self, config: Mapping[str, Any], context: Mapping[str, Any]
    ) -> dict[str, Any]:
        payload = dict(config.get("payload") or {})
        events = await self._emit(
            config["event_name"], payload, tenant_id=context.get("tenant_id")
        )
        return {"events_emitted": len(events or [])}


def builtin_step_actions(
    mailer: Optional[Mailer] = None,
    sink: Optional[RecordSink] = None,
    http: Optional[ActionHandler] = None,
) -> Dict[str, ActionHandler]:
    """Return the default handlers for action steps keyed by ``type``."""
    sink = sink or InMemoryRecordSink()
    return {
        "send_email": SendEmailAction(mailer or LoggingMailer()),
        "create_task": CreateTaskAction(sink),
        "update_record": UpdateRecordAction(sink),
        "set_context": SetContextAction(),
        "webhook": http or HttpCallAction(default_method="POST"),
    }
