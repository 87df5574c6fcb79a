"""Shared helpers for CLI modules - store and runner factories, log printing."""

from __future__ import annotations

from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape

from browser_missions.errors import MissionsError

if TYPE_CHECKING:
    from browser_missions.workflow import AgentRunner, Workflow, WorkflowLog, WorkflowStore

console = Console()

_LOG_STYLES = {
    "success": "green",
    "error": "red",
    "condition": "cyan",
    "info": "white",
}


def get_store() -> WorkflowStore:
    """Workflow store on the configured directory."""
    from browser_missions.workflow import WorkflowStore

    return WorkflowStore()


def get_agent_runner(runner_path: str | None = None, dry_run: bool = False) -> AgentRunner:
    """Resolve the agent runner from the CLI option or settings."""
    from browser_missions.config import get_settings
    from browser_missions.workflow import DryRunAgentRunner, load_agent_runner

    settings = get_settings()
    if dry_run or settings.dry_run:
        return DryRunAgentRunner()

    path = runner_path or settings.agent_runner
    if not path:
        console.print("[red]No agent runner configured.[/red]")
        console.print("Pass --runner module:attribute, set AGENT_RUNNER, or use --dry-run.")
        raise typer.Exit(1)

    try:
        return load_agent_runner(path)
    except MissionsError as e:
        console.print(f"[red]Error loading agent runner:[/red] {e}")
        raise typer.Exit(1)


def load_or_exit(store: WorkflowStore, workflow_id: str) -> Workflow:
    """Load a workflow or exit with an error."""
    workflow = store.load(workflow_id)
    if workflow is None:
        console.print(f"[red]Workflow not found:[/red] {workflow_id}")
        raise typer.Exit(1)
    return workflow


def print_workflow_log(entry: WorkflowLog) -> None:
    """Print one workflow log entry with a colour per log type."""
    style = _LOG_STYLES.get(entry.type.value, "white")
    console.print(f"[{style}]{escape(entry.format())}[/{style}]", highlight=False)


def print_scheduler_log(message: str) -> None:
    """Print a scheduler log line without rich markup interpretation."""
    console.print(escape(message), style="dim", highlight=False)
