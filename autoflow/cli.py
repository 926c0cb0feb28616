"""Command line interface for running autoflow definitions."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from autoflow.config import AutoflowConfig, load_config
from autoflow.contracts import utcnow
from autoflow.definitions import DefinitionBundle, apply_definitions, load_definitions
from autoflow.errors import AutomationError
from autoflow.runtime import AutomationRuntime
from autoflow.schedule import get_evaluator

app = typer.Typer(help="CLI for autoflow workflows, tasks and triggers")

schedule_app = typer.Typer(help="Commands for inspecting schedule expressions")
app.add_typer(schedule_app, name="schedule")


@app.callback()
def main() -> None:
    """autoflow CLI entry point."""
    pass


def _config_or_exit() -> AutoflowConfig:
    try:
        return load_config()
    except AutomationError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _configure_logging(config: AutoflowConfig) -> None:
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_or_exit(path: Path) -> DefinitionBundle:
    if not path.exists():
        typer.secho("Specified path does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    try:
        return load_definitions(path)
    except AutomationError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


@app.command("validate")
def validate(path: Path) -> None:
    """
    Check a definitions file without running anything.

    Every workflow, task and trigger is created in a throwaway runtime so graph
    integrity, schedule expressions and trigger configs are all verified.

    Example:
        autoflow validate ./automations.yaml
        # Output: OK: 2 workflows, 1 tasks, 3 triggers
    """
    config = _config_or_exit()
    _configure_logging(config)
    bundle = _load_or_exit(path)

    async def _validate() -> None:
        async with AutomationRuntime(config) as runtime:
            await apply_definitions(runtime, bundle)

    try:
        asyncio.run(_validate())
    except AutomationError as exc:
        typer.secho(f"Invalid: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(
        f"OK: {len(bundle.workflows)} workflows, {len(bundle.tasks)} tasks, "
        f"{len(bundle.triggers)} triggers"
    )


@app.command("run")
def run(
    path: Path,
    lifespan: Optional[float] = typer.Option(
        None, help="Stop after this many seconds (default: run until interrupted)"
    ),
) -> None:
    """
    Load a definitions file and keep its tasks and triggers running.

    Example:
        autoflow run ./automations.yaml
        autoflow run ./automations.yaml --lifespan 300
    """
    config = _config_or_exit()
    _configure_logging(config)
    bundle = _load_or_exit(path)

    async def _run() -> None:
        async with AutomationRuntime(config) as runtime:
            applied = await apply_definitions(runtime, bundle)
            typer.echo(
                f"Running {len(applied.tasks)} tasks and {len(applied.triggers)} triggers"
            )
            if lifespan is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(lifespan)

    try:
        asyncio.run(_run())
    except AutomationError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        typer.echo("Stopped")


@app.command("execute")
def execute(
    path: Path,
    workflow: str,
    context: Optional[str] = typer.Option(None, help="Initial context as a JSON object"),
) -> None:
    """
    Run one workflow from a definitions file and print the outcome.

    Example:
        autoflow execute ./automations.yaml "Welcome New Customer" --context '{"name": "Ada"}'
        # Output: Execution 1f0c...: completed
        #         Context: {"name": "Ada", "email_sent": "..."}
    """
    config = _config_or_exit()
    _configure_logging(config)
    bundle = _load_or_exit(path)
    try:
        initial = json.loads(context) if context else {}
    except json.JSONDecodeError as exc:
        typer.secho(f"Invalid --context JSON: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    async def _execute():
        async with AutomationRuntime(config) as runtime:
            applied = await apply_definitions(
                runtime, bundle.model_copy(update={"tasks": [], "triggers": []})
            )
            if workflow not in applied.workflows:
                return None
            execution = await runtime.engine.execute_workflow(
                applied.workflows[workflow], initial
            )
            return await runtime.engine.wait_for_execution(execution.id)

    try:
        result = asyncio.run(_execute())
    except AutomationError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if result is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Execution {result.id}: {result.status.value}")
    typer.echo(f"Context: {json.dumps(result.context, default=str)}")
    if result.error:
        typer.secho(f"Error: {result.error}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


@schedule_app.command("next")
def schedule_next(
    expression: str,
    count: int = typer.Option(5, min=1, help="Number of fire times to show"),
) -> None:
    """
    Show the upcoming fire times of a schedule expression.

    Example:
        autoflow schedule next "*/5 * * * *" --count 3
        autoflow schedule next "@every 90s"
    """
    evaluator = get_evaluator(_config_or_exit())
    try:
        times = evaluator.next_fire_times(expression, utcnow(), count)
    except AutomationError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    for fire_time in times:
        typer.echo(fire_time.isoformat())


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
