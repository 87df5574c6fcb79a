"""Execution result and log models for workflow runs."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import now_ms


class LogType(str, Enum):
    """Kind of a workflow log entry."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    CONDITION = "condition"


class WorkflowLog(BaseModel):
    """One entry of a run's audit trail."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    timestamp: int = Field(default_factory=now_ms)
    step_id: str
    step_name: str
    type: LogType
    message: str

    def format(self) -> str:
        """Render as ``[step name] message`` for consoles and chat sinks."""
        return f"[{self.step_name or 'workflow'}] {self.message}"


class WorkflowExecutionResult(BaseModel):
    """Result of executing one workflow."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool
    workflow_id: str
    start_time: int
    end_time: int
    steps_executed: int = 0
    last_step_id: str | None = None
    error: str | None = None
    error_code: str | None = None
    logs: list[WorkflowLog] = Field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time) / 1000

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# Type for log sinks
WorkflowLogCallback = Callable[[WorkflowLog], None]
