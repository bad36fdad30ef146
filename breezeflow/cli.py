"""Command line interface for breezeflow workflows and executions."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from breezeflow.catalog import WorkflowCatalog
from breezeflow.cli_utils.documents import _load_document, _parse_payload
from breezeflow.cli_utils.render import _format_execution, _format_stats, _format_workflow
from breezeflow.collaborators import get_action_dispatcher, get_ai_caller
from breezeflow.config import BreezeflowConfig, load_config
from breezeflow.contracts import WorkflowStatus
from breezeflow.engine import ExecutionEngine
from breezeflow.errors import BreezeflowError
from breezeflow.graph import parse_workflow, validate_workflow
from breezeflow.persistence import ExecutionStore, create_store
from breezeflow.presets import get_preset, list_presets
from breezeflow.scheduler import ExecutionScheduler

app = typer.Typer(help="CLI for breezeflow workflow automation")

# Command groups
workflow_app = typer.Typer(help="Commands for managing workflow definitions")
execution_app = typer.Typer(help="Commands for starting and inspecting executions")
scheduler_app = typer.Typer(help="Commands for resuming delayed executions")

app.add_typer(workflow_app, name="workflow")
app.add_typer(execution_app, name="execution")
app.add_typer(scheduler_app, name="scheduler")

_settings: dict = {}


@app.callback()
def main(
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Path to breezeflow.yaml"
    ),
) -> None:
    """breezeflow CLI entry point."""
    config = load_config(str(config_path) if config_path else None)
    _settings["config"] = config
    _settings["store"] = create_store(config.database_url)
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _config() -> BreezeflowConfig:
    return _settings.get("config") or load_config()


def _store() -> ExecutionStore:
    if "store" not in _settings:
        _settings["store"] = create_store(_config().database_url)
    return _settings["store"]


def _engine() -> ExecutionEngine:
    config = _config()
    return ExecutionEngine(
        store=_store(),
        ai=get_ai_caller(config),
        actions=get_action_dispatcher(config),
        config=config,
    )


def _catalog() -> WorkflowCatalog:
    return WorkflowCatalog(_store())


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=1)


# ----------------------------------------------------------------------
# workflow


@workflow_app.command("import")
def workflow_import(
    path: Path,
    workflow_id: Optional[str] = typer.Option(None, "--id", help="Override the workflow id"),
) -> None:
    """
    Store a workflow definition from a JSON or YAML file.

    The definition is validated (node payloads and graph shape) before it is
    saved. Imported workflows keep the status written in the file.

    Example:
        breezeflow workflow import ./followup.json --id post-demo
    """
    try:
        document = _load_document(path)
        workflow = asyncio.run(_catalog().import_document(document, workflow_id))
    except (OSError, ValueError, BreezeflowError) as exc:
        _fail(f"Import failed: {exc}")
    typer.echo(f"Imported workflow {workflow.id} ({workflow.name})")


@workflow_app.command("validate")
def workflow_validate(path: Path) -> None:
    """Check a workflow file without storing it."""
    try:
        workflow = parse_workflow(_load_document(path))
        validate_workflow(workflow)
    except (OSError, ValueError, BreezeflowError) as exc:
        _fail(f"Invalid: {exc}")
    typer.echo(f"Valid: {workflow.name} ({len(workflow.nodes)} nodes, {len(workflow.edges)} edges)")


@workflow_app.command("list")
def workflow_list() -> None:
    """
    List stored workflows with their status and trigger.

    Example:
        breezeflow workflow list
        # Output: post-demo    active    deal_stage_changed    Post-Demo Follow-Up
    """
    workflows = asyncio.run(_catalog().list())
    if not workflows:
        typer.echo("No workflows found")
        return
    for workflow in workflows:
        trigger = workflow.trigger_type.value if workflow.trigger_type else "-"
        typer.echo(f"{workflow.id}\t{workflow.status.value}\t{trigger}\t{workflow.name}")


@workflow_app.command("show")
def workflow_show(workflow_id: str) -> None:
    """Show a workflow's graph and execution counters."""

    async def _show():
        workflow = await _catalog().get(workflow_id)
        stats = await _engine().workflow_stats(workflow_id)
        return workflow, stats

    try:
        workflow, stats = asyncio.run(_show())
    except BreezeflowError as exc:
        _fail(str(exc))
    for line in _format_workflow(workflow) + _format_stats(stats):
        typer.echo(line)


def _set_status(workflow_id: str, status: WorkflowStatus) -> None:
    try:
        workflow = asyncio.run(_catalog().set_status(workflow_id, status))
    except BreezeflowError as exc:
        _fail(str(exc))
    typer.echo(f"Workflow {workflow.id} is now {workflow.status.value}")


@workflow_app.command("activate")
def workflow_activate(workflow_id: str) -> None:
    """Activate a workflow so trigger events start it."""
    _set_status(workflow_id, WorkflowStatus.ACTIVE)


@workflow_app.command("pause")
def workflow_pause(workflow_id: str) -> None:
    """Pause a workflow; running executions are not affected."""
    _set_status(workflow_id, WorkflowStatus.PAUSED)


@workflow_app.command("toggle")
def workflow_toggle(workflow_id: str) -> None:
    """Pause an active workflow, or activate a paused or draft one."""
    try:
        workflow = asyncio.run(_catalog().toggle(workflow_id))
    except BreezeflowError as exc:
        _fail(str(exc))
    typer.echo(f"Workflow {workflow.id} is now {workflow.status.value}")


@workflow_app.command("duplicate")
def workflow_duplicate(
    workflow_id: str,
    new_id: Optional[str] = typer.Option(None, "--id", help="Id for the copy"),
) -> None:
    """
    Copy a workflow into a new draft.

    Example:
        breezeflow workflow duplicate post-demo --id post-demo-v2
        # Output: Created workflow post-demo-v2 (Post-Demo Follow-Up (Copy))
    """
    try:
        workflow = asyncio.run(_catalog().duplicate(workflow_id, new_id))
    except BreezeflowError as exc:
        _fail(str(exc))
    typer.echo(f"Created workflow {workflow.id} ({workflow.name})")


@workflow_app.command("delete")
def workflow_delete(
    workflow_id: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete a workflow definition. Its executions are kept."""
    if not yes:
        typer.confirm(f"Delete workflow {workflow_id}?", abort=True)
    try:
        asyncio.run(_catalog().delete(workflow_id))
    except BreezeflowError as exc:
        _fail(str(exc))
    typer.echo(f"Deleted workflow {workflow_id}")


@workflow_app.command("stats")
def workflow_stats(
    workspace: Optional[str] = typer.Option(None, help="Only count this workspace"),
) -> None:
    """Count workflows by status."""
    stats = asyncio.run(_catalog().stats(workspace))
    for line in _format_stats(stats):
        typer.echo(line)


@workflow_app.command("presets")
def workflow_presets(
    category: Optional[str] = typer.Option(None, help="Only show presets in this category"),
) -> None:
    """List the bundled workflow templates."""
    presets = list_presets(category)
    if not presets:
        typer.echo("No presets found")
        return
    for preset in presets:
        typer.echo(f"{preset.id}\t{preset.category}\t{preset.trigger_type.value}\t{preset.name}")


@workflow_app.command("add-preset")
def workflow_add_preset(
    preset_id: str,
    workspace: Optional[str] = typer.Option(None, help="Workspace owning the new workflow"),
    workflow_id: Optional[str] = typer.Option(None, "--id", help="Id for the new workflow"),
) -> None:
    """Create a draft workflow from a bundled template."""
    preset = get_preset(preset_id)
    if preset is None:
        _fail(f"Unknown preset: {preset_id}")
    workflow = preset.instantiate(workspace_id=workspace, workflow_id=workflow_id)
    asyncio.run(_catalog().save(workflow))
    typer.echo(f"Created workflow {workflow.id} from preset {preset.id}")


# ----------------------------------------------------------------------
# execution


@execution_app.command("start")
def execution_start(
    workflow_id: str,
    data: Optional[str] = typer.Option(
        None, help="Trigger data as JSON, or @path to a JSON file"
    ),
    force: bool = typer.Option(False, help="Run even if the workflow is not active"),
) -> None:
    """
    Start an execution of a workflow and run it until it suspends or ends.

    Example:
        breezeflow execution start post-demo --data '{"deal": {"company": "Acme"}}'
        # Output: Execution 1f0c...: running
        #         Resumes at: 2024-01-01T12:00:00+00:00
    """

    async def _start():
        engine = _engine()
        execution_id = await engine.start_execution(workflow_id, payload, force=force)
        return await engine.get_execution(execution_id)

    try:
        payload = _parse_payload(data)
        execution = asyncio.run(_start())
    except (OSError, ValueError, BreezeflowError) as exc:
        _fail(f"Could not start workflow {workflow_id}: {exc}")
    for line in _format_execution(execution):
        typer.echo(line)


@execution_app.command("show")
def execution_show(execution_id: str) -> None:
    """Show an execution's status, path and node outputs."""
    try:
        execution = asyncio.run(_engine().get_execution(execution_id))
    except BreezeflowError as exc:
        _fail(str(exc))
    for line in _format_execution(execution):
        typer.echo(line)


@execution_app.command("list")
def execution_list(
    workflow_id: str,
    limit: int = typer.Option(50, min=1, help="Maximum number of executions"),
) -> None:
    """List recent executions of a workflow, newest first."""
    executions = asyncio.run(_engine().list_executions(workflow_id, limit))
    if not executions:
        typer.echo("No executions found")
        return
    for execution in executions:
        typer.echo(
            f"{execution.id}\t{execution.status.value}\t{execution.started_at.isoformat()}"
        )


@execution_app.command("cancel")
def execution_cancel(execution_id: str) -> None:
    """Cancel an execution."""
    try:
        execution = asyncio.run(_engine().cancel(execution_id))
    except BreezeflowError as exc:
        _fail(str(exc))
    typer.echo(f"Execution {execution.id}: {execution.status.value}")


# ----------------------------------------------------------------------
# scheduler


@scheduler_app.command("tick")
def scheduler_tick() -> None:
    """Resume every execution whose delay has elapsed, once."""
    engine = _engine()
    resumed = asyncio.run(ExecutionScheduler(engine).run_once())
    typer.echo(json.dumps({"resumed": resumed}))


@scheduler_app.command("run")
def scheduler_run(
    lifespan: Optional[float] = typer.Option(
        None, help="Stop after this many seconds (default: run until interrupted)"
    ),
) -> None:
    """Poll for due executions on the configured interval."""
    engine = _engine()

    async def _run() -> None:
        scheduler = ExecutionScheduler(engine)
        scheduler.start()
        try:
            if lifespan is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(lifespan)
        finally:
            await scheduler.stop()

    typer.echo(f"Starting scheduler (interval {engine.config.scheduler.interval_seconds}s)")
    asyncio.run(_run())


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
