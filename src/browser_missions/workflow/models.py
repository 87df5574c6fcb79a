"""Workflow definition models.

A workflow runs either in *mission mode* (one free-text instruction handed to
the agent) or in *step mode* (a graph of prompts linked by success/failure
transitions). Records are persisted as camelCase JSON, so every model uses
camelCase aliases while Python code works with snake_case attributes.
"""

from __future__ import annotations

import random
import re
import string
import time
from dataclasses import dataclass
from enum import Enum
from typing import Annotated

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
)
from pydantic.alias_generators import to_camel

DEFAULT_MISSION_MAX_TURNS = 30
DEFAULT_STEP_MAX_TURNS = 20
DEFAULT_INTERVAL_MINUTES = 60
DEFAULT_SCHEDULE_TIME = "09:00"
DEFAULT_DAY_OF_WEEK = 1  # Monday

_ID_ALPHABET = string.ascii_lowercase + string.digits
_SENTINELS = frozenset(("next", "end", "retry"))
_TIME_RE = re.compile(r"^\s*([01]?\d|2[0-3]):([0-5]\d)\s*$")


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def parse_schedule_time(value: str | None) -> tuple[int, int] | None:
    """Parse ``"HH:MM"`` (24-hour clock) into (hours, minutes), or None."""
    match = _TIME_RE.match(value or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def _positive_or_none(value):
    # Records written by hand or by older clients use 0 for "default"
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value < 1:
        return None
    return value


def _non_negative(value):
    if isinstance(value, int) and not isinstance(value, bool) and value < 0:
        return 0
    return value


def _in_range_or_none(low: int, high: int):
    def check(value):
        if isinstance(value, int) and not isinstance(value, bool) and not low <= value <= high:
            return None
        return value

    return check


def generate_workflow_id() -> str:
    """Generate a unique workflow ID like ``wf-1718000000000-k3j9x0a1b``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"wf-{now_ms()}-{suffix}"


class TransitionKind(str, Enum):
    """Where a step goes after it settles."""

    NEXT = "next"
    END = "end"
    RETRY = "retry"
    GOTO = "goto"


@dataclass(frozen=True)
class Transition:
    """Parsed ``onSuccess``/``onFailure`` value.

    The reserved words ``next``, ``end`` and ``retry`` are sentinels; any
    other string is a reference to a step id in the same workflow.
    """

    kind: TransitionKind
    step_id: str | None = None

    @classmethod
    def parse(cls, value: str | Transition) -> Transition:
        if isinstance(value, Transition):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Transition must be a string, got {type(value).__name__}")
        if value in _SENTINELS:
            return cls(TransitionKind(value))
        return cls(TransitionKind.GOTO, value)

    @classmethod
    def goto(cls, step_id: str) -> Transition:
        return cls(TransitionKind.GOTO, step_id)

    def __str__(self) -> str:
        if self.kind == TransitionKind.GOTO:
            return self.step_id or ""
        return self.kind.value


TransitionField = Annotated[
    Transition,
    BeforeValidator(Transition.parse),
    PlainSerializer(str, return_type=str),
]

# Out-of-range numbers fall back to the defaults instead of rejecting the record
PositiveOrDefault = Annotated[int | None, BeforeValidator(_positive_or_none)]
DayOfWeek = Annotated[int | None, BeforeValidator(_in_range_or_none(0, 6))]
RetryCount = Annotated[int, BeforeValidator(_non_negative)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )


class ScheduleType(str, Enum):
    """Types of recurrence."""

    INTERVAL = "interval"
    DAILY = "daily"
    WEEKLY = "weekly"


class Schedule(_CamelModel):
    """Recurrence settings embedded in a workflow.

    ``last_run`` and ``next_run`` belong to the scheduler; user edits should
    leave them alone.
    """

    enabled: bool = False
    type: ScheduleType = ScheduleType.INTERVAL
    interval_minutes: PositiveOrDefault = None
    time: str | None = None
    day_of_week: DayOfWeek = None
    last_run: int | None = None
    next_run: int | None = None

    def parsed_time(self) -> tuple[int, int]:
        """Return (hours, minutes) from ``time``.

        A missing or unreadable time falls back to 09:00.
        """
        return parse_schedule_time(self.time) or parse_schedule_time(DEFAULT_SCHEDULE_TIME)

    def describe(self) -> str:
        """Short human-readable description, e.g. ``daily at 09:00``."""
        if self.type == ScheduleType.INTERVAL:
            return f"every {self.interval_minutes or DEFAULT_INTERVAL_MINUTES} min"
        hours, minutes = self.parsed_time()
        if self.type == ScheduleType.DAILY:
            return f"daily at {hours:02d}:{minutes:02d}"
        day = self.day_of_week if self.day_of_week is not None else DEFAULT_DAY_OF_WEEK
        names = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
        return f"weekly on {names[day]} at {hours:02d}:{minutes:02d}"


class WorkflowStep(_CamelModel):
    """One prompt in a step-mode workflow."""

    id: str
    name: str = ""
    prompt: str = ""
    max_turns: PositiveOrDefault = None
    on_success: TransitionField = Transition(TransitionKind.NEXT)
    on_failure: TransitionField = Transition(TransitionKind.END)
    retry_count: RetryCount = 0

    @property
    def effective_max_turns(self) -> int:
        return self.max_turns or DEFAULT_STEP_MAX_TURNS


class Workflow(_CamelModel):
    """A named automation unit."""

    id: str = Field(default_factory=generate_workflow_id)
    name: str
    description: str | None = None
    enabled: bool = True
    mission: str | None = None
    max_turns: PositiveOrDefault = None
    steps: list[WorkflowStep] = Field(default_factory=list)
    schedule: Schedule | None = None
    created_at: int = Field(default_factory=now_ms)
    updated_at: int = Field(default_factory=now_ms)

    @property
    def is_mission_mode(self) -> bool:
        return bool(self.mission and self.mission.strip())

    @property
    def effective_max_turns(self) -> int:
        return self.max_turns or DEFAULT_MISSION_MAX_TURNS

    @property
    def is_scheduled(self) -> bool:
        """True when the scheduler should consider this workflow."""
        return bool(self.enabled and self.schedule and self.schedule.enabled)

    def get_step(self, step_id: str) -> WorkflowStep | None:
        """Get a step by ID (first match)."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def step_index(self, step_id: str) -> int:
        """Index of the step with ``step_id``, or -1."""
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        return -1

    def add_step(self, name: str | None = None, prompt: str = "", **fields) -> WorkflowStep:
        """Append a new step with a fresh id.

        New steps continue to the next step on success and end the workflow
        on failure unless told otherwise.
        """
        counter = len(self.steps) + 1
        step_id = f"step-{now_ms()}-{counter}"
        while self.get_step(step_id):
            counter += 1
            step_id = f"step-{now_ms()}-{counter}"

        step = WorkflowStep(
            id=step_id,
            name=name or f"Step {len(self.steps) + 1}",
            prompt=prompt,
            **fields,
        )
        self.steps = [*self.steps, step]
        return step

    def remove_step(self, step_id: str) -> bool:
        """Remove a step. Transitions pointing at it are left dangling."""
        index = self.step_index(step_id)
        if index < 0:
            return False
        self.steps = self.steps[:index] + self.steps[index + 1 :]
        return True

    def move_step(self, step_id: str, offset: int) -> bool:
        """Move a step up (negative offset) or down within ``steps``."""
        index = self.step_index(step_id)
        target = index + offset
        if index < 0 or target < 0 or target >= len(self.steps):
            return False
        steps = list(self.steps)
        steps.insert(target, steps.pop(index))
        self.steps = steps
        return True

    def to_record(self) -> dict:
        """Serialize to the persisted JSON-compatible record."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_record(cls, data: dict) -> Workflow:
        """Build a workflow from a persisted record."""
        return cls.model_validate(data)
