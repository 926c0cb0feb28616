"""Workflow execution engine tests."""

import asyncio

import pytest

from autoflow.actions import ActionDispatcher, ActionHandler, LoggingMailer, builtin_step_actions
from autoflow.config import EngineConfig
from autoflow.contracts import ExecutionStatus
from autoflow.engine import WorkflowEngine, evaluate_condition
from autoflow.errors import InactiveError, NotFoundError, ValidationError


class Boom(ActionHandler):
    async def execute(self, config, context):
        raise RuntimeError("smtp unreachable")


class Recorder(ActionHandler):
    def __init__(self):
        self.calls = []

    async def execute(self, config, context):
        self.calls.append(config.get("label"))
        return {"last": config.get("label")}


def make_engine(**config):
    mailer = LoggingMailer()
    actions = ActionDispatcher(builtin_step_actions(mailer=mailer))
    actions.register("boom", Boom())
    recorder = Recorder()
    actions.register("record", recorder)
    engine = WorkflowEngine(actions, config=EngineConfig(**config))
    return engine, recorder, mailer


def step(id, kind, next_steps=(), **config):
    return {"id": id, "kind": kind, "name": id, "config": config, "next_steps": list(next_steps)}


def branching_workflow(with_else=True):
    steps = [
        step("start", "trigger", ["check"]),
        step(
            "check",
            "condition",
            ["high", "low"] if with_else else ["high"],
            field="score",
            operator="greater_than",
            value=5,
        ),
        step("high", "action", type="record", label="high"),
    ]
    if with_else:
        steps.append(step("low", "action", type="record", label="low"))
    return {"name": "branching", "tenant_id": "acme", "steps": steps}


@pytest.mark.asyncio
async def test_actions_merge_into_context_in_order():
    engine, _, _ = make_engine()
    workflow = await engine.create_workflow(
        {
            "name": "round trip",
            "tenant_id": "acme",
            "steps": [
                step("A", "trigger", ["B"]),
                step("B", "action", ["C"], type="set_context", values={"x": 1}),
                step("C", "action", type="set_context", values={"y": 2}),
            ],
        }
    )

    execution = await engine.execute_workflow(workflow.id, {})
    assert execution.status == ExecutionStatus.RUNNING
    assert execution.current_step == "A"

    final = await engine.wait_for_execution(execution.id)
    assert final.status == ExecutionStatus.COMPLETED
    assert final.context == {"x": 1, "y": 2}
    assert final.completed_at is not None
    assert final.current_step is None
    assert final.steps_run == 3


@pytest.mark.asyncio
async def test_condition_true_takes_first_branch():
    engine, recorder, _ = make_engine()
    workflow = await engine.create_workflow(branching_workflow())

    execution = await engine.execute_workflow(workflow.id, {"score": 10})
    final = await engine.wait_for_execution(execution.id)

    assert final.status == ExecutionStatus.COMPLETED
    assert final.context["condition_result"] is True
    assert recorder.calls == ["high"]


@pytest.mark.asyncio
async def test_condition_false_takes_second_branch():
    engine, recorder, _ = make_engine()
    workflow = await engine.create_workflow(branching_workflow())

    execution = await engine.execute_workflow(workflow.id, {"score": 3})
    final = await engine.wait_for_execution(execution.id)

    assert final.context["condition_result"] is False
    assert recorder.calls == ["low"]


@pytest.mark.asyncio
async def test_condition_false_without_branch_completes():
    engine, recorder, _ = make_engine()
    workflow = await engine.create_workflow(branching_workflow(with_else=False))

    execution = await engine.execute_workflow(workflow.id, {"score": 3})
    final = await engine.wait_for_execution(execution.id)

    assert final.status == ExecutionStatus.COMPLETED
    assert recorder.calls == []


@pytest.mark.parametrize(
    "operator, actual, expected, outcome",
    [
        ("equals", "gold", "gold", True),
        ("equals", 1, "1", False),
        ("not_equals", 1, 2, True),
        ("greater_than", 10, 5, True),
        ("greater_than", None, 5, False),
        ("less_than", 3, 10, True),
        ("less_than", "a", 10, False),
        ("contains", "hello world", "world", True),
        ("contains", ["vip", "new"], "vip", True),
        ("contains", None, "x", False),
    ],
)
def test_evaluate_condition(operator, actual, expected, outcome):
    assert evaluate_condition(operator, actual, expected) is outcome


@pytest.mark.asyncio
async def test_failing_step_fails_execution_without_raising():
    engine, recorder, _ = make_engine()
    workflow = await engine.create_workflow(
        {
            "name": "failing",
            "tenant_id": "acme",
            "steps": [
                step("first", "action", ["explode"], type="record", label="first"),
                step("explode", "action", ["after"], type="boom"),
                step("after", "action", type="record", label="after"),
            ],
        }
    )

    execution = await engine.execute_workflow(workflow.id)
    final = await engine.wait_for_execution(execution.id)

    assert final.status == ExecutionStatus.FAILED
    assert "explode" in final.error
    assert "smtp unreachable" in final.error
    assert final.current_step == "explode"
    assert final.completed_at is not None
    assert recorder.calls == ["first"]
    assert final.context == {"last": "first"}


@pytest.mark.asyncio
async def test_unknown_and_inactive_workflows():
    engine, _, _ = make_engine()
    with pytest.raises(NotFoundError):
        await engine.execute_workflow("missing")

    workflow = await engine.create_workflow(
        {"name": "off", "tenant_id": "acme", "active": False, "steps": []}
    )
    with pytest.raises(InactiveError):
        await engine.execute_workflow(workflow.id)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "steps, message",
    [
        ([step("a", "trigger"), step("a", "trigger")], "duplicate step id"),
        ([step("a", "trigger", ["ghost"])], "unknown step 'ghost'"),
        ([step("c", "condition", field="x", operator="between", value=1)], "unknown operator"),
        ([step("c", "condition", operator="equals", value=1)], "needs a 'field'"),
        ([step("d", "delay", duration=-1)], "non-negative"),
        ([step("act", "action", type="teleport")], "unknown type"),
        ([step("act", "action", type="send_email", to="x")], "missing 'subject'"),
    ],
)
async def test_create_workflow_rejects_malformed_graphs(steps, message):
    engine, _, _ = make_engine()
    with pytest.raises(ValidationError, match=message):
        await engine.create_workflow({"name": "bad", "tenant_id": "acme", "steps": steps})


@pytest.mark.asyncio
async def test_create_workflow_rejects_unknown_step_kind():
    engine, _, _ = make_engine()
    with pytest.raises(ValidationError):
        await engine.create_workflow(
            {"name": "bad", "tenant_id": "acme", "steps": [step("x", "loop")]}
        )


@pytest.mark.asyncio
async def test_initial_context_is_copied():
    engine, _, _ = make_engine()
    workflow = await engine.create_workflow(
        {
            "name": "copy",
            "tenant_id": "acme",
            "steps": [
                step("wait", "delay", ["set"], duration=0.02),
                step("set", "action", type="set_context", values={"added": True}),
            ],
        }
    )
    payload = {"customer": {"name": "Ada"}}

    execution = await engine.execute_workflow(workflow.id, payload)
    payload["customer"]["name"] = "Changed"
    final = await engine.wait_for_execution(execution.id)

    assert final.context["customer"] == {"name": "Ada"}
    assert payload == {"customer": {"name": "Changed"}}


@pytest.mark.asyncio
async def test_snapshots_cannot_mutate_stored_execution():
    engine, _, _ = make_engine()
    workflow = await engine.create_workflow(
        {"name": "snap", "tenant_id": "acme", "steps": [step("only", "trigger")]}
    )
    execution = await engine.execute_workflow(workflow.id)
    final = await engine.wait_for_execution(execution.id)

    final.status = ExecutionStatus.RUNNING
    final.context["tampered"] = True

    stored = await engine.get_execution(execution.id)
    assert stored.status == ExecutionStatus.COMPLETED
    assert "tampered" not in stored.context


@pytest.mark.asyncio
async def test_delay_suspends_only_its_execution():
    engine, recorder, _ = make_engine()
    slow = await engine.create_workflow(
        {
            "name": "slow",
            "tenant_id": "acme",
            "steps": [
                step("wait", "delay", ["mark"], duration=0.2),
                step("mark", "action", type="record", label="slow"),
            ],
        }
    )
    fast = await engine.create_workflow(
        {
            "name": "fast",
            "tenant_id": "globex",
            "steps": [step("mark", "action", type="record", label="fast")],
        }
    )

    slow_run = await engine.execute_workflow(slow.id)
    fast_run = await engine.execute_workflow(fast.id)
    await engine.wait_for_execution(fast_run.id)

    assert recorder.calls == ["fast"]
    assert (await engine.get_execution(slow_run.id)).status == ExecutionStatus.RUNNING

    final = await engine.wait_for_execution(slow_run.id)
    assert final.status == ExecutionStatus.COMPLETED
    assert recorder.calls == ["fast", "slow"]


@pytest.mark.asyncio
async def test_step_limit_stops_cycles():
    engine, _, _ = make_engine(max_steps=5)
    workflow = await engine.create_workflow(
        {
            "name": "loop",
            "tenant_id": "acme",
            "steps": [
                step("a", "trigger", ["b"]),
                step("b", "delay", ["a"], duration=0),
            ],
        }
    )
    execution = await engine.execute_workflow(workflow.id)
    final = await engine.wait_for_execution(execution.id, timeout=1)

    assert final.status == ExecutionStatus.FAILED
    assert "step limit" in final.error
    assert final.steps_run == 5


@pytest.mark.asyncio
async def test_empty_workflow_completes():
    engine, _, _ = make_engine()
    workflow = await engine.create_workflow({"name": "empty", "tenant_id": "acme"})
    execution = await engine.execute_workflow(workflow.id, {"a": 1})
    final = await engine.wait_for_execution(execution.id)
    assert final.status == ExecutionStatus.COMPLETED
    assert final.context == {"a": 1}


@pytest.mark.asyncio
async def test_update_workflow_revalidates_and_keeps_running_version():
    engine, recorder, _ = make_engine()
    workflow = await engine.create_workflow(
        {
            "name": "v1",
            "tenant_id": "acme",
            "steps": [
                step("wait", "delay", ["mark"], duration=0.05),
                step("mark", "action", type="record", label="v1"),
            ],
        }
    )
    running = await engine.execute_workflow(workflow.id)

    updated = await engine.update_workflow(
        workflow.id,
        name="v2",
        steps=[step("mark", "action", type="record", label="v2")],
    )
    assert updated.id == workflow.id
    assert updated.created_at == workflow.created_at
    assert updated.updated_at >= workflow.updated_at

    await engine.wait_for_execution(running.id)
    assert recorder.calls == ["v1"]

    with pytest.raises(ValidationError):
        await engine.update_workflow(workflow.id, steps=[step("x", "trigger", ["nowhere"])])
    with pytest.raises(NotFoundError):
        await engine.update_workflow("missing", name="x")

    deactivated = await engine.update_workflow(workflow.id, active=False)
    assert deactivated.active is False
    with pytest.raises(InactiveError):
        await engine.execute_workflow(workflow.id)


@pytest.mark.asyncio
async def test_templates_run_with_builtin_actions():
    engine, _, mailer = make_engine()
    welcome = await engine.create_workflow_from_template("welcome_new_customer", "acme")
    execution = await engine.execute_workflow(
        welcome.id, {"name": "Ada", "email": "ada@example.com", "tenant_id": "acme"}
    )
    final = await engine.wait_for_execution(execution.id)

    assert final.status == ExecutionStatus.COMPLETED
    assert mailer.sent[0] == {"to": "ada@example.com", "subject": "Welcome!", "body": "Welcome Ada!"}
    assert "task_id" in final.context

    alert = await engine.create_workflow_from_template(
        "low_inventory_alert", "acme", name="Stock alert"
    )
    assert alert.name == "Stock alert"
    for quantity in (20, 3):
        run = await engine.execute_workflow(
            alert.id,
            {"quantity": quantity, "product_name": "Widget", "admin_email": "ops@acme.test"},
        )
        await engine.wait_for_execution(run.id)

    assert len(mailer.sent) == 2
    assert mailer.sent[1]["body"] == "Widget is low: 3 remaining"

    with pytest.raises(NotFoundError):
        await engine.create_workflow_from_template("missing", "acme")


@pytest.mark.asyncio
async def test_listing_is_tenant_scoped_and_newest_first():
    engine, _, _ = make_engine()
    acme = await engine.create_workflow({"name": "a", "tenant_id": "acme"})
    await engine.create_workflow({"name": "g", "tenant_id": "globex"})

    assert [w.id for w in await engine.list_workflows("acme")] == [acme.id]

    first = await engine.execute_workflow(acme.id)
    second = await engine.execute_workflow(acme.id)
    await engine.close()

    history = await engine.list_executions(acme.id)
    assert [e.id for e in history] == [second.id, first.id]
    assert engine.running_count == 0


@pytest.mark.asyncio
async def test_get_unknown_execution():
    engine, _, _ = make_engine()
    with pytest.raises(NotFoundError):
        await engine.get_execution("missing")
    with pytest.raises(NotFoundError):
        await engine.get_workflow("missing")
