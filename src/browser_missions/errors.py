"""Browser Missions Error Hierarchy.

Structured exception types for the workflow engine and scheduler.
"""

from __future__ import annotations


class MissionsError(Exception):
    """Base error for all browser-missions exceptions."""

    code = "MISSIONS_ERROR"

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


# Workflow Errors
class WorkflowError(MissionsError):
    """Base error for workflow execution failures."""

    code = "WORKFLOW_ERROR"


class WorkflowValidationError(WorkflowError):
    """Workflow has neither a mission nor any steps."""

    code = "VALIDATION"


class MissionFailureError(WorkflowError):
    """The agent reported the mission as failed, or raised."""

    code = "MISSION_FAILED"


class StepFailureError(WorkflowError):
    """A step failed and its failure branch leads nowhere."""

    code = "STEP_FAILED"

    def __init__(self, message: str, step_id: str = None, attempts: int = 0):
        super().__init__(message, {"step_id": step_id, "attempts": attempts})
        self.step_id = step_id
        self.attempts = attempts


class GraphLimitExceededError(WorkflowError):
    """Too many step executions, usually a cycle in the branch graph."""

    code = "EXECUTION_LIMIT"

    def __init__(self, message: str, limit: int = 0):
        super().__init__(message, {"limit": limit})
        self.limit = limit


class WorkflowAbortedError(WorkflowError):
    """Workflow was aborted by the user."""

    code = "ABORTED"


class WorkflowNotFoundError(WorkflowError):
    """Workflow definition not found."""

    code = "WORKFLOW_NOT_FOUND"


class WorkflowBusyError(WorkflowError):
    """Workflow is already running."""

    code = "WORKFLOW_BUSY"


# Scheduler Errors
class ScheduleInvocationError(MissionsError):
    """A scheduled workflow run did not complete successfully."""

    code = "SCHEDULE_INVOCATION"

    def __init__(self, message: str, workflow_id: str = None, cause: str = None):
        super().__init__(message, {"workflow_id": workflow_id, "cause": cause})
        self.workflow_id = workflow_id
        self.cause = cause


# Store Errors
class StoreError(MissionsError):
    """Error reading or writing a workflow record."""

    code = "STORE_ERROR"


class WorkflowImportError(StoreError):
    """Imported workflow JSON is malformed."""

    code = "IMPORT_ERROR"


# Agent Runner Errors
class AgentRunnerError(MissionsError):
    """Agent runner could not be loaded or configured."""

    code = "AGENT_RUNNER_ERROR"
