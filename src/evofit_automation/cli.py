"""CLI entry points for EvoFit automation.

Commands:
    evofit-automation workflows list    List registered workflows
    evofit-automation workflows show    Show one workflow definition
    evofit-automation run               Run a workflow manually
    evofit-automation publish           Publish an event to matching workflows
    evofit-automation webhook           Invoke a webhook path
    evofit-automation history           Show execution history
    evofit-automation stats             Show workflow statistics
    evofit-automation config            Show, locate or initialise the config file
    evofit-automation serve             Run the HTTP server
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

import typer
from rich.console import Console
from rich.table import Table

import evofit_automation
from evofit_automation.workflows.errors import WorkflowError
from evofit_automation.workflows.models import ExecutionStatus, WorkflowExecution
from evofit_automation.workflows.serialization import execution_to_dict, workflow_to_dict

if TYPE_CHECKING:
    from evofit_automation.workflows.engine import WorkflowEngine

console = Console()
app = typer.Typer(
    name="evofit-automation",
    help="Run and inspect EvoFit workflow automations.",
    no_args_is_help=True,
)
workflows_app = typer.Typer(help="Inspect registered workflows.")
app.add_typer(workflows_app, name="workflows")

config_app = typer.Typer(help="Show configuration.")
app.add_typer(config_app, name="config")

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STATUS_STYLE = {
    ExecutionStatus.COMPLETED: "green",
    ExecutionStatus.FAILED: "red",
    ExecutionStatus.SKIPPED: "yellow",
    ExecutionStatus.CANCELLED: "dim",
}


def _setup_logging(verbose: bool = False) -> None:
    """Configure root logging for CLI output."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _parse_json(raw: str | None, option: str) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid JSON for {option}: {exc}[/red]")
        raise typer.Exit(code=1) from None


def _with_engine(func: Callable[[WorkflowEngine], Awaitable[T]]) -> T:
    """Boot a runtime without schedule timers, run ``func``, shut down."""
    from evofit_automation.runtime import AutomationRuntime

    async def _main() -> T:
        runtime = AutomationRuntime()
        engine = await runtime.start(arm_schedules=False)
        try:
            return await func(engine)
        finally:
            await runtime.stop()

    try:
        return asyncio.run(_main())
    except WorkflowError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from None


def _print_execution(execution: WorkflowExecution, as_json: bool) -> None:
    if as_json:
        console.print_json(json.dumps(execution_to_dict(execution), default=str))
        return

    style = _STATUS_STYLE.get(execution.status, "white")
    console.print(
        f"Execution [bold]{execution.id}[/bold] "
        f"({execution.workflow_id}): [{style}]{execution.status.value}[/{style}]"
    )
    if execution.error:
        console.print(f"  [red]error:[/red] {execution.error}")

    if execution.steps:
        table = Table(title="Steps")
        table.add_column("Action", style="cyan")
        table.add_column("Status")
        table.add_column("Attempts", justify="right")
        table.add_column("Error", style="red")
        for step in execution.steps:
            table.add_row(step.action_id, step.status.value, str(step.attempts), step.error or "")
        console.print(table)


# ------------------------------------------------------------------
# evofit-automation workflows
# ------------------------------------------------------------------


@workflows_app.command("list")
def workflows_list(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """List registered workflows."""
    _setup_logging(verbose)

    async def _list(engine: WorkflowEngine) -> None:
        table = Table(title="Workflows")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("Trigger")
        table.add_column("Enabled")
        table.add_column("Priority", justify="right")
        for workflow in engine.list_workflows():
            trigger = workflow.trigger
            detail = trigger.event or trigger.webhook or ""
            if trigger.schedule is not None:
                detail = trigger.schedule.expression
            table.add_row(
                workflow.id,
                workflow.name,
                f"{trigger.type.value} {detail}".strip(),
                "[green]yes[/green]" if workflow.enabled else "[red]no[/red]",
                str(workflow.priority),
            )
        console.print(table)

    _with_engine(_list)


@workflows_app.command("show")
def workflows_show(workflow_id: str = typer.Argument(..., help="Workflow id")) -> None:
    """Print one workflow definition as JSON."""
    _setup_logging()

    async def _show(engine: WorkflowEngine) -> None:
        workflow = engine.get_workflow(workflow_id)
        if workflow is None:
            console.print(f"[red]Workflow {workflow_id} not found[/red]")
            raise typer.Exit(code=1)
        console.print_json(json.dumps(workflow_to_dict(workflow), default=str))

    _with_engine(_show)


# ------------------------------------------------------------------
# evofit-automation run / publish / webhook
# ------------------------------------------------------------------


@app.command()
def run(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    input_json: str | None = typer.Option(None, "--input", "-i", help="Input payload as JSON"),
    execution_id: str | None = typer.Option(None, "--execution-id", help="Execution id to use"),
    as_json: bool = typer.Option(False, "--json", help="Print the execution as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Run a workflow manually."""
    _setup_logging(verbose)
    payload = _parse_json(input_json, "--input")

    async def _run(engine: WorkflowEngine) -> WorkflowExecution:
        return await engine.run_workflow(workflow_id, payload, execution_id)

    execution = _with_engine(_run)
    _print_execution(execution, as_json)
    if execution.status == ExecutionStatus.FAILED:
        raise typer.Exit(code=1)


@app.command()
def publish(
    event_name: str = typer.Argument(..., help="Event name, e.g. user.registered"),
    payload_json: str | None = typer.Option(None, "--payload", "-p", help="Payload as JSON"),
    as_json: bool = typer.Option(False, "--json", help="Print executions as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Publish an event to every matching workflow."""
    _setup_logging(verbose)
    payload = _parse_json(payload_json, "--payload")

    async def _publish(engine: WorkflowEngine) -> list[WorkflowExecution]:
        return await engine.publish(event_name, payload)

    executions = _with_engine(_publish)
    if not executions:
        console.print(f"[dim]No enabled workflows listen for {event_name}.[/dim]")
        return
    for execution in executions:
        _print_execution(execution, as_json)


@app.command()
def webhook(
    path: str = typer.Argument(..., help="Webhook path"),
    body_json: str | None = typer.Option(None, "--body", "-b", help="Request body as JSON"),
    as_json: bool = typer.Option(False, "--json", help="Print the execution as JSON"),
) -> None:
    """Invoke the workflow registered for a webhook path."""
    _setup_logging()
    body = _parse_json(body_json, "--body")

    async def _invoke(engine: WorkflowEngine) -> WorkflowExecution:
        return await engine.invoke_webhook(path, body)

    _print_execution(_with_engine(_invoke), as_json)


# ------------------------------------------------------------------
# evofit-automation history / stats
# ------------------------------------------------------------------


@app.command()
def history(
    workflow_id: str | None = typer.Option(None, "--workflow", "-w", help="Filter by workflow"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of executions to show"),
) -> None:
    """Show recent executions."""
    _setup_logging()

    async def _history(engine: WorkflowEngine) -> list[WorkflowExecution]:
        return engine.get_execution_history(workflow_id, limit)

    executions = _with_engine(_history)
    if not executions:
        console.print("[dim]No executions recorded.[/dim]")
        return

    table = Table(title="Execution history")
    table.add_column("Execution", style="cyan")
    table.add_column("Workflow")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Steps", justify="right")
    for execution in executions:
        style = _STATUS_STYLE.get(execution.status, "white")
        duration = execution.duration_ms
        table.add_row(
            execution.id,
            execution.workflow_id,
            f"[{style}]{execution.status.value}[/{style}]",
            execution.start_time.strftime("%Y-%m-%d %H:%M:%S"),
            f"{duration:.0f}" if duration is not None else "-",
            str(len(execution.steps)),
        )
    console.print(table)


@app.command()
def stats(workflow_id: str = typer.Argument(..., help="Workflow id")) -> None:
    """Show aggregate statistics for a workflow."""
    _setup_logging()

    async def _stats(engine: WorkflowEngine) -> Any:
        return engine.get_workflow_stats(workflow_id)

    result = _with_engine(_stats)
    table = Table(title=f"Stats: {workflow_id}", show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Total executions", str(result.total_executions))
    table.add_row("Success rate", f"{result.success_rate:.1%}")
    table.add_row("Successful (history)", str(result.successful))
    table.add_row("Failed (history)", str(result.failed))
    table.add_row("Avg duration (ms)", str(result.avg_duration_ms))
    last = result.last_executed_at
    table.add_row("Last executed", last.isoformat() if last else "never")
    console.print(table)


# ------------------------------------------------------------------
# evofit-automation config
# ------------------------------------------------------------------


@config_app.command("show")
def config_show() -> None:
    """Print the effective configuration."""
    from evofit_automation.config import ConfigManager

    cfg = ConfigManager().load()
    table = Table(title="Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for section, values in cfg.model_dump().items():
        for key, value in values.items():
            table.add_row(f"{section}.{key}", str(value))
    console.print(table)


@config_app.command("path")
def config_path() -> None:
    """Print the config file location."""
    from evofit_automation.config import ConfigManager

    manager = ConfigManager()
    suffix = "" if manager.exists() else " [dim](not created yet)[/dim]"
    console.print(f"{manager.get_config_path()}{suffix}")


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a config file holding the defaults."""
    from evofit_automation.config import ConfigManager

    manager = ConfigManager()
    if not manager.init(force=force):
        console.print(f"[yellow]{manager.get_config_path()} already exists[/yellow] (use --force)")
        raise typer.Exit(1)
    console.print(f"[green]Wrote[/green] {manager.get_config_path()}")


# ------------------------------------------------------------------
# evofit-automation serve / version
# ------------------------------------------------------------------


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", help="Bind port"),
) -> None:
    """Run the webhook / query HTTP server."""
    import uvicorn

    from evofit_automation.config import ConfigManager
    from evofit_automation.runtime import AutomationRuntime
    from evofit_automation.server.app import create_app

    cfg = ConfigManager().load()
    logging.basicConfig(
        level=cfg.logging.level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(AutomationRuntime(cfg)),
        host=host or cfg.server.host,
        port=port or cfg.server.port,
        log_level=cfg.logging.level.lower(),
    )


@app.command()
def version() -> None:
    """Print the installed version."""
    console.print(evofit_automation.__version__)
