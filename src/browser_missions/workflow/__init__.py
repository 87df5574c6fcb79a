"""Workflow engine: models, store, executor and scheduler."""

from .executor import MAX_STEP_EXECUTIONS, STEP_RETRY_DELAY_SECONDS, WorkflowExecutor
from .models import (
    DEFAULT_MISSION_MAX_TURNS,
    DEFAULT_STEP_MAX_TURNS,
    Schedule,
    ScheduleType,
    Transition,
    TransitionKind,
    Workflow,
    WorkflowStep,
    generate_workflow_id,
    now_ms,
)
from .results import LogType, WorkflowExecutionResult, WorkflowLog, WorkflowLogCallback
from .runner import AgentRunner, AgentRunResult, DryRunAgentRunner, load_agent_runner
from .scheduler import (
    SchedulerCallbacks,
    WorkflowScheduler,
    calculate_next_run,
    next_run_time,
)
from .service import WorkflowService
from .store import WorkflowStore

__all__ = [
    # Models
    "Workflow",
    "WorkflowStep",
    "Schedule",
    "ScheduleType",
    "Transition",
    "TransitionKind",
    "DEFAULT_MISSION_MAX_TURNS",
    "DEFAULT_STEP_MAX_TURNS",
    "generate_workflow_id",
    "now_ms",
    # Results
    "LogType",
    "WorkflowLog",
    "WorkflowLogCallback",
    "WorkflowExecutionResult",
    # Agent runner
    "AgentRunner",
    "AgentRunResult",
    "DryRunAgentRunner",
    "load_agent_runner",
    # Store
    "WorkflowStore",
    # Executor
    "WorkflowExecutor",
    "MAX_STEP_EXECUTIONS",
    "STEP_RETRY_DELAY_SECONDS",
    # Scheduler
    "WorkflowScheduler",
    "SchedulerCallbacks",
    "calculate_next_run",
    "next_run_time",
    # Service
    "WorkflowService",
]
