"""Browser Missions - AI-driven browser workflows with branching steps and schedules."""

__version__ = "0.1.0"

from .config import Settings, configure_logging, get_settings
from .errors import MissionsError, WorkflowError
from .workflow import (
    AgentRunner,
    AgentRunResult,
    Schedule,
    ScheduleType,
    Workflow,
    WorkflowExecutionResult,
    WorkflowExecutor,
    WorkflowLog,
    WorkflowScheduler,
    WorkflowService,
    WorkflowStep,
    WorkflowStore,
)

__all__ = [
    "Settings",
    "get_settings",
    "configure_logging",
    "MissionsError",
    "WorkflowError",
    "AgentRunner",
    "AgentRunResult",
    "Workflow",
    "WorkflowStep",
    "Schedule",
    "ScheduleType",
    "WorkflowLog",
    "WorkflowExecutionResult",
    "WorkflowStore",
    "WorkflowExecutor",
    "WorkflowScheduler",
    "WorkflowService",
]
