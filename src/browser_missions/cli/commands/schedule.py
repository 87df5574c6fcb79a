"""Schedule commands - inspect and edit workflow schedules."""

from __future__ import annotations

import json

import typer
from rich.markup import escape
from rich.table import Table

from ..helpers import console, get_store, load_or_exit

schedule_app = typer.Typer(help="Manage workflow schedules")


@schedule_app.command("list")
def schedule_list(
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """List workflows with a schedule and their upcoming runs."""
    from browser_missions.workflow import next_run_time
    from browser_missions.workflow.scheduler import format_run_time

    workflows = [w for w in get_store().load_all() if w.schedule]

    if json_output:
        print(
            json.dumps(
                [
                    {
                        "id": w.id,
                        "name": w.name,
                        "enabled": w.is_scheduled,
                        "schedule": w.schedule.model_dump(mode="json", by_alias=True),
                        "upcoming": next_run_time(w).isoformat() if next_run_time(w) else None,
                    }
                    for w in workflows
                ],
                indent=2,
                ensure_ascii=False,
            )
        )
        return

    if not workflows:
        console.print("[yellow]No scheduled workflows[/yellow]")
        return

    table = Table(title="Scheduled Workflows")
    table.add_column("ID", style="cyan")
    table.add_column("Workflow")
    table.add_column("Schedule")
    table.add_column("Status")
    table.add_column("Last Run")
    table.add_column("Next Run")

    for w in workflows:
        status_color = "green" if w.is_scheduled else "yellow"
        status = "active" if w.is_scheduled else "inactive"
        table.add_row(
            w.id,
            escape(w.name),
            w.schedule.describe(),
            f"[{status_color}]{status}[/{status_color}]",
            format_run_time(w.schedule.last_run),
            format_run_time(w.schedule.next_run),
        )

    console.print(table)


@schedule_app.command("set")
def schedule_set(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
    interval: int = typer.Option(None, "--interval", "-i", min=1, help="Run every N minutes"),
    daily: str = typer.Option(None, "--daily", help="Run every day at HH:MM"),
    weekly: str = typer.Option(None, "--weekly", help="Run weekly at HH:MM (with --day)"),
    day: int = typer.Option(1, "--day", min=0, max=6, help="Day of week, Sunday=0"),
):
    """Enable a schedule on a workflow."""
    from browser_missions.workflow import Schedule, ScheduleType, next_run_time
    from browser_missions.workflow.models import parse_schedule_time

    chosen = [opt for opt in (interval, daily, weekly) if opt is not None]
    if len(chosen) != 1:
        console.print("[red]Specify exactly one of --interval, --daily or --weekly[/red]")
        raise typer.Exit(1)

    at = daily if daily is not None else weekly
    if at is not None and parse_schedule_time(at) is None:
        console.print("[red]Time must be HH:MM (24-hour clock)[/red]")
        raise typer.Exit(1)

    if interval is not None:
        schedule = Schedule(enabled=True, type=ScheduleType.INTERVAL, interval_minutes=interval)
    elif daily is not None:
        schedule = Schedule(enabled=True, type=ScheduleType.DAILY, time=daily.strip())
    else:
        schedule = Schedule(
            enabled=True, type=ScheduleType.WEEKLY, time=weekly.strip(), day_of_week=day
        )

    store = get_store()
    workflow = load_or_exit(store, workflow_id)
    if workflow.schedule:
        # last_run and next_run belong to the scheduler
        schedule.last_run = workflow.schedule.last_run
        schedule.next_run = workflow.schedule.next_run
    workflow.schedule = schedule
    store.save(workflow)

    upcoming = next_run_time(workflow)
    console.print(f"[green]✓ Schedule set:[/green] {schedule.describe()}")
    if upcoming:
        console.print(f"  Upcoming: {upcoming:%Y-%m-%d %H:%M}")


@schedule_app.command("disable")
def schedule_disable(
    workflow_id: str = typer.Argument(..., help="Workflow ID"),
):
    """Disable a workflow's schedule."""
    store = get_store()
    workflow = load_or_exit(store, workflow_id)
    if not workflow.schedule or not workflow.schedule.enabled:
        console.print(f"[yellow]Schedule already disabled:[/yellow] {workflow_id}")
        return

    workflow.schedule.enabled = False
    store.save(workflow)
    console.print(f"[green]✓ Schedule disabled:[/green] {workflow_id}")
