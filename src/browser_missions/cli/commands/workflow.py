"""Workflow commands - list, show, create, edit steps, import/export, run."""

from __future__ import annotations

import asyncio
import contextlib
import json
import signal
from datetime import datetime
from pathlib import Path

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from browser_missions.errors import MissionsError

from ..helpers import (
    console,
    get_agent_runner,
    get_store,
    load_or_exit,
    print_workflow_log,
)

workflow_app = typer.Typer(help="Manage and run workflows")


def _format_ms(epoch_ms: int | None) -> str:
    if not epoch_ms:
        return "-"
    return datetime.fromtimestamp(epoch_ms / 1000).strftime("%Y-%m-%d %H:%M")


@workflow_app.command("list")
def workflow_list(
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """List stored workflows, most recently updated first."""
    workflows = get_store().load_all()

    if json_output:
        print(json.dumps([w.to_record() for w in workflows], indent=2, ensure_ascii=False))
        return

    if not workflows:
        console.print("[yellow]No workflows[/yellow]")
        return

    table = Table(title="Workflows")
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Mode")
    table.add_column("Schedule")
    table.add_column("Updated")

    for wf in workflows:
        mode = "mission" if wf.is_mission_mode else f"{len(wf.steps)} step(s)"
        schedule = wf.schedule.describe() if wf.schedule and wf.schedule.enabled else "-"
        name = escape(wf.name) if wf.enabled else f"[dim]{escape(wf.name)} (disabled)[/dim]"
        table.add_row(wf.id, name, mode, schedule, _format_ms(wf.updated_at))

    console.print(table)


@workflow_app.command("show")
def workflow_show(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
):
    """Show a workflow and its step graph."""
    workflow = load_or_exit(get_store(), workflow_id)

    console.print(
        Panel(
            f"[bold]{escape(workflow.name)}[/bold]\n"
            f"[dim]{escape(workflow.description or 'No description')}[/dim]",
            title=workflow.id,
            border_style="blue",
        )
    )

    if workflow.is_mission_mode:
        console.print(f"[dim]Mission ({workflow.effective_max_turns} turns):[/dim]")
        console.print(f"  {escape(workflow.mission)}")
    elif workflow.steps:
        table = Table(title="Steps")
        table.add_column("#", justify="right")
        table.add_column("ID", style="cyan")
        table.add_column("Name")
        table.add_column("On success")
        table.add_column("On failure")
        table.add_column("Retries", justify="right")
        for index, step in enumerate(workflow.steps, 1):
            table.add_row(
                str(index),
                step.id,
                escape(step.name),
                str(step.on_success),
                str(step.on_failure),
                str(step.retry_count),
            )
        console.print(table)
    else:
        console.print("[yellow]No mission or steps defined[/yellow]")

    if workflow.schedule:
        state = "enabled" if workflow.schedule.enabled else "disabled"
        console.print(f"\n[dim]Schedule:[/dim] {workflow.schedule.describe()} ({state})")
        console.print(f"  Last run: {_format_ms(workflow.schedule.last_run)}")
        console.print(f"  Next run: {_format_ms(workflow.schedule.next_run)}")


@workflow_app.command("create")
def workflow_create(
    name: str = typer.Argument(..., help="Workflow name"),
    description: str = typer.Option(None, "--description", "-d", help="Description"),
    mission: str = typer.Option(None, "--mission", "-m", help="Mission instruction"),
    max_turns: int = typer.Option(None, "--max-turns", help="Mission turn limit"),
):
    """Create a new workflow."""
    store = get_store()
    workflow = store.create(name, description)
    workflow.mission = mission
    workflow.max_turns = max_turns
    store.save(workflow)
    console.print(f"[green]✓ Workflow created:[/green] {workflow.id}")


@workflow_app.command("add-step")
def workflow_add_step(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    prompt: str = typer.Argument(..., help="Instruction for the agent"),
    name: str = typer.Option(None, "--name", "-n", help="Step name"),
    on_success: str = typer.Option("next", "--on-success", help="next, end or a step id"),
    on_failure: str = typer.Option("end", "--on-failure", help="end, retry, next or a step id"),
    retry_count: int = typer.Option(0, "--retries", "-r", min=0, help="Re-attempts on failure"),
    max_turns: int = typer.Option(None, "--max-turns", help="Agent turn limit"),
):
    """Append a step to a workflow."""
    store = get_store()
    workflow = load_or_exit(store, workflow_id)
    step = workflow.add_step(
        name,
        prompt,
        on_success=on_success,
        on_failure=on_failure,
        retry_count=retry_count,
        max_turns=max_turns,
    )
    store.save(workflow)
    console.print(f"[green]✓ Step added:[/green] {step.id}")


@workflow_app.command("remove-step")
def workflow_remove_step(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    step_id: str = typer.Argument(..., help="Step ID"),
):
    """Remove a step. Transitions that pointed at it are not rewritten."""
    store = get_store()
    workflow = load_or_exit(store, workflow_id)
    if not workflow.remove_step(step_id):
        console.print(f"[red]Step not found:[/red] {escape(step_id)}")
        raise typer.Exit(1)
    store.save(workflow)
    console.print(f"[green]✓ Step removed:[/green] {escape(step_id)}")


@workflow_app.command("move-step")
def workflow_move_step(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    step_id: str = typer.Argument(..., help="Step ID"),
    up: bool = typer.Option(False, "--up/--down", help="Direction to move the step"),
):
    """Move a step one position up or down."""
    store = get_store()
    workflow = load_or_exit(store, workflow_id)
    if workflow.get_step(step_id) is None:
        console.print(f"[red]Step not found:[/red] {escape(step_id)}")
        raise typer.Exit(1)
    if not workflow.move_step(step_id, -1 if up else 1):
        edge = "first" if up else "last"
        console.print(f"[yellow]Step is already {edge}:[/yellow] {escape(step_id)}")
        raise typer.Exit(1)
    store.save(workflow)
    position = workflow.step_index(step_id) + 1
    console.print(f"[green]✓ Step moved:[/green] {escape(step_id)} is now #{position}")


@workflow_app.command("delete")
def workflow_delete(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
):
    """Delete a workflow."""
    if get_store().delete(workflow_id):
        console.print(f"[green]✓ Workflow deleted:[/green] {workflow_id}")
    else:
        console.print(f"[red]Workflow not found:[/red] {workflow_id}")
        raise typer.Exit(1)


@workflow_app.command("duplicate")
def workflow_duplicate(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
):
    """Copy a workflow under a new id."""
    store = get_store()
    copy = store.duplicate(load_or_exit(store, workflow_id))
    store.save(copy)
    console.print(f"[green]✓ Workflow duplicated:[/green] {copy.id} ({escape(copy.name)})")


@workflow_app.command("export")
def workflow_export(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    output: Path = typer.Option(None, "--output", "-o", help="Write to file instead of stdout"),
):
    """Export a workflow as JSON."""
    store = get_store()
    text = store.export_workflow(load_or_exit(store, workflow_id))
    if output:
        output.write_text(text, encoding="utf-8")
        console.print(f"[green]✓ Exported to[/green] {output}")
    else:
        print(text)


@workflow_app.command("import")
def workflow_import(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Workflow JSON file"),
):
    """Import a workflow from a JSON file under a new id."""
    store = get_store()
    try:
        workflow = store.parse_import(path.read_text(encoding="utf-8"))
    except MissionsError as e:
        console.print(f"[red]Import rejected:[/red] {e}")
        raise typer.Exit(1)

    store.save(workflow)
    console.print(f"[green]✓ Workflow imported:[/green] {workflow.id} ({escape(workflow.name)})")


@workflow_app.command("run")
def workflow_run(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    runner: str = typer.Option(None, "--runner", help="Agent runner as module:attribute"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use the dry-run agent runner"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output result as JSON"),
):
    """Run a workflow now. Ctrl+C aborts after the current step."""
    from browser_missions.config import get_settings
    from browser_missions.workflow import WorkflowService

    store = get_store()
    load_or_exit(store, workflow_id)

    service = WorkflowService(
        get_agent_runner(runner, dry_run),
        store=store,
        on_log=None if json_output else print_workflow_log,
        retry_delay=get_settings().step_retry_delay_seconds,
    )

    async def _run():
        loop = asyncio.get_running_loop()
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signal.SIGINT, service.abort, workflow_id)
        return await service.run(workflow_id)

    try:
        result = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)
    except MissionsError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if json_output:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    elif result.success:
        console.print(
            f"\n[green]✓ Workflow succeeded[/green] "
            f"({result.steps_executed} step(s), {result.duration_seconds:.1f}s)"
        )
    else:
        error = escape(result.error or "unknown error")
        console.print(f"\n[red]✗ Workflow failed:[/red] {error}")

    if not result.success:
        raise typer.Exit(1)
