"""review-automation CLI."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import settings
from .database import async_session_factory, engine, init_db
from .engine.errors import AutomationError
from .engine.registry import build_default_registry

app = typer.Typer(
    name="review-automation",
    help="Review automation: triggers, workflows and AI responses",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger(__name__)

STATUS_STYLES = {"completed": "green", "failed": "red", "running": "yellow", "pending": "dim"}


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.is_production:
        if not settings.ai_configured:
            logger.warning("No Anthropic API key in %s; AI responses fall back to drafts", settings.environment)
        if not settings.sendgrid_configured:
            logger.warning("SendGrid is not configured in %s; email notifications will fail", settings.environment)


def _output_result(result: Any) -> None:
    console.print_json(json.dumps(result, default=str, indent=2))


def _uuid(value: str, name: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        console.print(f"[red]Invalid {name}: {value}[/red]")
        raise typer.Exit(1)


def _day(value: Optional[datetime]):
    return value.date() if value else None


@app.command("init-db")
def init_db_command():
    """Create the database tables."""
    asyncio.run(init_db(engine))
    console.print("[green]Database initialised[/green]")


@app.command("run-scheduled")
def run_scheduled(
    schedule: str = typer.Option("daily", "--schedule", "-s", help="Schedule name to fire"),
    tenant_id: Optional[str] = typer.Option(None, "--tenant", "-t", help="Limit to one tenant"),
):
    """Fire scheduled workflows (meant to be called from cron)."""
    from .services import event_svc

    context = {"tenant_id": str(_uuid(tenant_id, "tenant id"))} if tenant_id else None

    async def _run():
        async with async_session_factory() as db:
            executions = await event_svc.handle_scheduled_trigger(
                db, schedule, context, build_default_registry()
            )
            return [(str(e.id), e.status, e.actions_completed, e.actions_failed) for e in executions]

    rows = asyncio.run(_run())
    console.print(f"Fired [bold]{schedule}[/bold]: {len(rows)} execution(s)")
    for execution_id, status, done, failed in rows:
        style = STATUS_STYLES.get(status, "white")
        console.print(f"  {execution_id} [{style}]{status}[/{style}] ({done} ok, {failed} failed)")


@app.command("trigger")
def trigger(
    workflow_id: str = typer.Argument(..., help="Workflow to run"),
    user_id: str = typer.Option(..., "--user", "-u", help="User triggering the run"),
    data: str = typer.Option("{}", "--data", "-d", help="Event data as JSON"),
):
    """Run one workflow manually."""
    from .services import event_svc

    try:
        context = json.loads(data)
    except ValueError as exc:
        console.print(f"[red]--data is not valid JSON: {exc}[/red]")
        raise typer.Exit(1)

    async def _run():
        async with async_session_factory() as db:
            execution = await event_svc.handle_manual_trigger(
                db, _uuid(workflow_id, "workflow id"), context, user_id, build_default_registry()
            )
            return {
                "execution_id": str(execution.id),
                "status": execution.status,
                "actions_completed": execution.actions_completed,
                "actions_failed": execution.actions_failed,
                "error_message": execution.error_message,
                "results": execution.results,
            }

    try:
        result = asyncio.run(_run())
    except AutomationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)
    _output_result(result)
    if result["status"] != "completed":
        raise typer.Exit(1)


@app.command("executions")
def executions(
    workflow_id: str = typer.Argument(..., help="Workflow id"),
    status: Optional[str] = typer.Option(None, "--status", help="completed/failed/running/pending"),
    date_from: Optional[datetime] = typer.Option(None, "--from", formats=["%Y-%m-%d"]),
    date_to: Optional[datetime] = typer.Option(None, "--to", formats=["%Y-%m-%d"]),
    page: int = typer.Option(1, "--page", min=1),
    per_page: int = typer.Option(15, "--per-page", min=1, max=200),
):
    """Show a workflow's execution history."""
    from .services import execution_svc

    async def _run():
        async with async_session_factory() as db:
            return await execution_svc.list_executions(
                db,
                workflow_id=_uuid(workflow_id, "workflow id"),
                status=status,
                date_from=_day(date_from),
                date_to=_day(date_to),
                page=page,
                per_page=per_page,
            )

    result = asyncio.run(_run())
    table = Table(title=f"Executions ({result.total} total, page {result.page}/{result.pages})")
    table.add_column("ID", style="dim")
    table.add_column("Status")
    table.add_column("Source")
    table.add_column("OK", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Duration (s)", justify="right")
    table.add_column("Started")
    for e in result.items:
        style = STATUS_STYLES.get(e.status, "white")
        table.add_row(
            str(e.id),
            f"[{style}]{e.status}[/{style}]",
            e.trigger_source or "",
            str(e.actions_completed),
            str(e.actions_failed),
            "" if e.duration is None else f"{e.duration:.2f}",
            e.started_at.strftime("%Y-%m-%d %H:%M:%S") if e.started_at else "",
        )
    console.print(table)


@app.command("logs")
def logs(
    workflow_id: Optional[str] = typer.Option(None, "--workflow", "-w"),
    execution_id: Optional[str] = typer.Option(None, "--execution", "-e"),
    level: Optional[str] = typer.Option(None, "--level", "-l", help="info/warning/error"),
    date_from: Optional[datetime] = typer.Option(None, "--from", formats=["%Y-%m-%d"]),
    date_to: Optional[datetime] = typer.Option(None, "--to", formats=["%Y-%m-%d"]),
    limit: int = typer.Option(100, "--limit", "-n", min=1),
):
    """Show automation audit log entries."""
    from .services import execution_svc

    async def _run():
        async with async_session_factory() as db:
            return await execution_svc.list_logs(
                db,
                workflow_id=_uuid(workflow_id, "workflow id") if workflow_id else None,
                execution_id=_uuid(execution_id, "execution id") if execution_id else None,
                level=level,
                date_from=_day(date_from),
                date_to=_day(date_to),
                limit=limit,
            )

    entries = asyncio.run(_run())
    table = Table(title="Automation log")
    table.add_column("Time", style="dim")
    table.add_column("Level")
    table.add_column("Event")
    table.add_column("Action")
    table.add_column("Message")
    for entry in entries:
        style = "red" if entry.level == "error" else "white"
        action = f"{entry.action_index}:{entry.action_type}" if entry.action_type else ""
        table.add_row(
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S") if entry.created_at else "",
            f"[{style}]{entry.level}[/{style}]",
            entry.event,
            action,
            entry.message or "",
        )
    console.print(table)


@app.command("stats")
def stats(
    tenant_id: str = typer.Argument(..., help="Tenant id"),
    date_from: Optional[datetime] = typer.Option(None, "--from", formats=["%Y-%m-%d"]),
    date_to: Optional[datetime] = typer.Option(None, "--to", formats=["%Y-%m-%d"]),
):
    """Workflow and execution statistics for a tenant."""
    from .services import execution_svc

    async def _run():
        async with async_session_factory() as db:
            return await execution_svc.get_stats(
                db, _uuid(tenant_id, "tenant id"), _day(date_from), _day(date_to)
            )

    _output_result(asyncio.run(_run()))


@app.command("analyze")
def analyze(workflow_id: str = typer.Argument(..., help="Workflow id")):
    """Ask the AI for optimisation suggestions on a workflow."""
    from .services import workflow_svc
    from .services.ai_svc import AIAutomationService

    if not settings.ai_configured:
        console.print("[yellow]AI is not configured; set RA_ANTHROPIC_API_KEY to analyse workflows.[/yellow]")
        raise typer.Exit(1)

    async def _run():
        async with async_session_factory() as db:
            workflow = await workflow_svc.get_workflow(db, _uuid(workflow_id, "workflow id"))
            if not workflow:
                return None
            return await AIAutomationService().analyze_and_optimize(db, workflow)

    result = asyncio.run(_run())
    if result is None:
        console.print(f"[red]Workflow not found: {workflow_id}[/red]")
        raise typer.Exit(1)
    _output_result(result)


@app.command("actions")
def actions(json_output: bool = typer.Option(False, "--json", help="Print config schemas as JSON")):
    """List the registered action types."""
    described = build_default_registry().describe_all()
    if json_output:
        _output_result(described)
        return
    table = Table(title="Registered actions")
    table.add_column("Type", style="cyan")
    table.add_column("Name")
    table.add_column("Description")
    for action_type, info in described.items():
        table.add_row(action_type, info["name"], info["description"])
    console.print(table)


if __name__ == "__main__":
    app()
