"""Browser Missions CLI - Main entry point."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer

from browser_missions import __version__

from .helpers import (
    console,
    get_agent_runner,
    get_store,
    print_scheduler_log,
    print_workflow_log,
)

app = typer.Typer(
    name="browser-missions",
    help="AI-driven browser workflows with branching steps and schedules.",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold cyan]browser-missions[/bold cyan] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
):
    """Browser Missions - hand natural-language missions to a browser agent.

    [bold]Quick Start:[/bold]

        browser-missions workflow create "Price check" -m "Open the shop and report the price"
        browser-missions workflow run WORKFLOW_ID --dry-run
        browser-missions schedule set WORKFLOW_ID --daily 09:00
        browser-missions serve
    """


# =============================================================================
# Register sub-app commands
# =============================================================================

from .commands.schedule import schedule_app  # noqa: E402
from .commands.workflow import workflow_app  # noqa: E402

app.add_typer(workflow_app, name="workflow")
app.add_typer(schedule_app, name="schedule")


@app.command()
def serve(
    runner: str = typer.Option(None, "--runner", help="Agent runner as module:attribute"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Use the dry-run agent runner"),
    tick: int = typer.Option(None, "--tick", min=1, help="Seconds between schedule checks"),
):
    """Run the scheduler until interrupted."""
    from browser_missions.config import configure_logging, get_settings
    from browser_missions.workflow import WorkflowScheduler, WorkflowService

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format, settings.sanitize_logs)
    settings.ensure_directories()

    store = get_store()
    service = WorkflowService(
        get_agent_runner(runner, dry_run),
        store=store,
        on_log=print_workflow_log,
        retry_delay=settings.step_retry_delay_seconds,
    )
    scheduler = WorkflowScheduler(store, tick_seconds=tick or settings.scheduler_tick_seconds)

    async def _serve():
        scheduler.start(service.callbacks(on_log=print_scheduler_log))
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.stop()

    console.print("[dim]Press Ctrl+C to stop[/dim]")
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        console.print("[yellow]Scheduler stopped[/yellow]")


if __name__ == "__main__":
    app()
