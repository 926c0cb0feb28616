"""Action handler tests."""

import httpx
import pytest

from autoflow.actions import (
    ActionDispatcher,
    CallFunctionAction,
    CreateTaskAction,
    EmitEventAction,
    FunctionRegistry,
    HttpCallAction,
    InMemoryRecordSink,
    LoggingMailer,
    SendEmailAction,
    SetContextAction,
    UpdateRecordAction,
    builtin_step_actions,
    render_config,
    render_template,
)
from autoflow.errors import DispatchError


def test_render_template_substitutes_known_keys():
    context = {"name": "Ada", "count": 3}
    assert render_template("Hello {{name}}, {{ count }} new", context) == "Hello Ada, 3 new"
    assert render_template("Hi {{missing}}", context) == "Hi {{missing}}"


def test_render_template_keeps_type_for_single_placeholder():
    assert render_template("{{count}}", {"count": 3}) == 3
    assert render_template("{{items}}", {"items": [1, 2]}) == [1, 2]


def test_render_config_recurses():
    rendered = render_config(
        {"to": "{{email}}", "data": {"who": "{{name}}"}, "tags": ["{{name}}", 4]},
        {"email": "a@example.com", "name": "Ada"},
    )
    assert rendered == {
        "to": "a@example.com",
        "data": {"who": "Ada"},
        "tags": ["Ada", 4],
    }


@pytest.mark.asyncio
async def test_dispatcher_renders_and_copies_context():
    seen = {}

    class Capture(SetContextAction):
        async def execute(self, config, context):
            seen["config"] = config
            context["leak"] = True
            return {}

    dispatcher = ActionDispatcher({"capture": Capture()})
    context = {"name": "Ada"}
    await dispatcher.dispatch("capture", {"values": {"greeting": "hi {{name}}"}}, context)

    assert seen["config"] == {"values": {"greeting": "hi Ada"}}
    assert "leak" not in context


@pytest.mark.asyncio
async def test_dispatcher_unknown_kind():
    with pytest.raises(DispatchError):
        await ActionDispatcher().dispatch("nope", {}, {})


def test_handler_reports_missing_keys():
    assert SendEmailAction(LoggingMailer()).validate({"to": "x"}) == ["subject"]
    assert SetContextAction().validate({"values": {}}) == []


@pytest.mark.asyncio
async def test_send_email_uses_mailer():
    mailer = LoggingMailer()
    result = await SendEmailAction(mailer).execute(
        {"to": "ada@example.com", "subject": "Welcome!", "body": "Hi"}, {}
    )
    assert result == {"email_sent": "ada@example.com"}
    assert mailer.sent == [{"to": "ada@example.com", "subject": "Welcome!", "body": "Hi"}]


@pytest.mark.asyncio
async def test_create_task_and_update_record():
    sink = InMemoryRecordSink()
    created = await CreateTaskAction(sink).execute(
        {"title": "Onboard Ada"}, {"tenant_id": "acme"}
    )
    row = sink.tables["tasks"][created["task_id"]]
    assert row["tenant_id"] == "acme"
    assert row["title"] == "Onboard Ada"

    await UpdateRecordAction(sink).execute(
        {"table": "tasks", "record_id": created["task_id"], "data": {"done": True}}, {}
    )
    assert sink.tables["tasks"][created["task_id"]]["done"] is True

    with pytest.raises(DispatchError):
        await UpdateRecordAction(sink).execute(
            {"table": "tasks", "record_id": "missing", "data": {}}, {}
        )


@pytest.mark.asyncio
async def test_emit_event_passes_tenant():
    calls = []

    async def emit(event_name, payload, tenant_id=None):
        calls.append((event_name, payload, tenant_id))
        return ["event"]

    result = await EmitEventAction(emit).execute(
        {"event_name": "order.placed", "payload": {"total": 5}}, {"tenant_id": "acme"}
    )
    assert result == {"events_emitted": 1}
    assert calls == [("order.placed", {"total": 5}, "acme")]


@pytest.mark.asyncio
async def test_function_registry_sync_and_async():
    registry = FunctionRegistry()

    @registry.register("double")
    def double(context, value):
        return {"value": value * 2, "tenant": context["tenant_id"]}

    async def shout(context, text):
        return text.upper()

    registry.register("shout", shout)
    action = CallFunctionAction(registry)

    assert await action.execute(
        {"function_name": "double", "arguments": {"value": 4}}, {"tenant_id": "acme"}
    ) == {"value": 8, "tenant": "acme"}
    assert await action.execute(
        {"function_name": "shout", "arguments": {"text": "hi"}}, {}
    ) == "HI"
    assert "double" in registry
    with pytest.raises(DispatchError):
        await action.execute({"function_name": "missing"}, {})


@pytest.mark.asyncio
async def test_http_call_action_success():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True})

    action = HttpCallAction(default_method="POST", transport=httpx.MockTransport(handler))
    result = await action.execute(
        {"url": "https://hooks.example.com/a", "data": {"name": "Ada"}}, {}
    )

    assert result == {"status_code": 200, "response": {"ok": True}}
    assert requests[0].method == "POST"
    assert requests[0].url == "https://hooks.example.com/a"


@pytest.mark.asyncio
async def test_http_call_action_error_status_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(503, text="down"))
    action = HttpCallAction(transport=transport)

    with pytest.raises(httpx.HTTPStatusError):
        await action.execute({"url": "https://api.example.com/health"}, {})


def test_builtin_step_actions_kinds():
    assert set(builtin_step_actions()) == {
        "send_email",
        "create_task",
        "update_record",
        "set_context",
        "webhook",
    }
