"""Workflow executor - drives one workflow run to completion.

A run is either a single mission handed to the agent runner, or a walk over
the step graph where each step's success or failure picks the next step.
Steps reference each other by id, so the graph may contain cycles; instead
of detecting them the walk is capped at ``MAX_STEP_EXECUTIONS``.
"""

from __future__ import annotations

import asyncio
import logging

from browser_missions.errors import (
    GraphLimitExceededError,
    MissionFailureError,
    StepFailureError,
    WorkflowAbortedError,
    WorkflowError,
    WorkflowValidationError,
)

from .models import TransitionKind, Workflow, WorkflowStep, now_ms
from .results import LogType, WorkflowExecutionResult, WorkflowLog, WorkflowLogCallback
from .runner import AgentRunner, AgentRunResult

logger = logging.getLogger(__name__)

MAX_STEP_EXECUTIONS = 50
STEP_RETRY_DELAY_SECONDS = 1.0

MISSION_STEP_ID = "mission"
MISSION_STEP_NAME = "Mission"
WORKFLOW_STEP_ID = "workflow"


class WorkflowExecutor:
    """Executes a single workflow run.

    One executor per run. ``abort()`` may be called from another task; it is
    observed before each step attempt, never in the middle of an agent call.

    Usage:
        executor = WorkflowExecutor(workflow, runner, on_log=print)
        result = await executor.execute()
    """

    def __init__(
        self,
        workflow: Workflow,
        agent_runner: AgentRunner,
        on_log: WorkflowLogCallback | None = None,
        retry_delay: float = STEP_RETRY_DELAY_SECONDS,
    ):
        """Initialize executor.

        Args:
            workflow: Workflow definition to run
            agent_runner: Runner that executes prompts against the browser
            on_log: Optional sink receiving every log entry as it is emitted
            retry_delay: Seconds to wait before re-attempting a failed step
        """
        self.workflow = workflow
        self.agent_runner = agent_runner
        self.on_log = on_log
        self.retry_delay = retry_delay
        self._logs: list[WorkflowLog] = []
        self._aborted = False

    @property
    def logs(self) -> list[WorkflowLog]:
        return list(self._logs)

    @property
    def aborted(self) -> bool:
        return self._aborted

    def abort(self) -> None:
        """Request the run to stop at the next step boundary."""
        self._aborted = True

    def _log(self, step_id: str, step_name: str, type: LogType, message: str) -> None:
        entry = WorkflowLog(step_id=step_id, step_name=step_name, type=type, message=message)
        self._logs.append(entry)
        logger.debug(
            message,
            extra={"workflow_id": self.workflow.id, "step_id": step_id, "log_type": type.value},
        )
        if self.on_log:
            try:
                self.on_log(entry)
            except Exception as e:
                logger.warning(f"Workflow log sink failed: {e}")

    async def _call_agent(self, prompt: str, max_turns: int, step_id: str, step_name: str):
        def on_progress(text: str) -> None:
            self._log(step_id, step_name, LogType.INFO, text)

        result = await self.agent_runner.run(prompt, max_turns, on_progress)
        return AgentRunResult.coerce(result)

    async def execute_step(self, step: WorkflowStep) -> bool:
        """Make one attempt at a step. Runner exceptions count as failure."""
        self._log(step.id, step.name, LogType.INFO, f"Running step: {step.prompt}")

        try:
            result = await self._call_agent(
                step.prompt, step.effective_max_turns, step.id, step.name
            )
        except Exception as e:
            self._log(step.id, step.name, LogType.ERROR, f"Error: {e}")
            return False

        if result.success:
            self._log(step.id, step.name, LogType.SUCCESS, f"Completed: {result.result}")
            return True

        self._log(step.id, step.name, LogType.ERROR, f"Failed: {result.result}")
        return False

    async def execute_step_with_retry(self, step: WorkflowStep) -> bool:
        """Attempt a step up to ``retry_count + 1`` times."""
        max_retries = step.retry_count
        attempt = 0

        while attempt <= max_retries:
            if self._aborted:
                self._log(step.id, step.name, LogType.ERROR, "Workflow aborted")
                return False

            if attempt > 0:
                self._log(step.id, step.name, LogType.INFO, f"Retry {attempt}/{max_retries}")
                await asyncio.sleep(self.retry_delay)

            if await self.execute_step(step):
                return True

            attempt += 1

        return False

    def find_next_step(self, step: WorkflowStep, success: bool) -> WorkflowStep | None:
        """Resolve the step that follows ``step``.

        ``end`` and ``retry`` both terminate the walk; ``retry_count`` has
        already been spent by the time a failure branch is resolved.
        """
        transition = step.on_success if success else step.on_failure

        if transition.kind in (TransitionKind.END, TransitionKind.RETRY):
            return None

        if transition.kind == TransitionKind.NEXT:
            index = self.workflow.step_index(step.id)
            if index < 0 or index >= len(self.workflow.steps) - 1:
                return None
            return self.workflow.steps[index + 1]

        return self.workflow.get_step(transition.step_id)

    async def execute(self) -> WorkflowExecutionResult:
        """Execute the workflow. Never raises; failures land in the result."""
        start_time = now_ms()
        logger.info(
            f"Executing workflow {self.workflow.id} ({self.workflow.name})",
            extra={"workflow_id": self.workflow.id},
        )

        self._log(
            WORKFLOW_STEP_ID,
            self.workflow.name,
            LogType.INFO,
            f"Workflow started: {self.workflow.name}",
        )

        if self.workflow.is_mission_mode:
            result = await self._execute_mission(start_time)
        else:
            result = await self._execute_steps(start_time)

        logger.info(
            f"Workflow {self.workflow.id} finished: "
            f"{'success' if result.success else 'failed'} "
            f"({result.steps_executed} step(s), {result.duration_seconds:.1f}s)",
            extra={
                "workflow_id": self.workflow.id,
                "step_id": result.last_step_id,
                "duration_ms": result.end_time - result.start_time,
            },
        )
        return result

    async def _execute_mission(self, start_time: int) -> WorkflowExecutionResult:
        mission = self.workflow.mission.strip()
        max_turns = self.workflow.effective_max_turns

        self._log(MISSION_STEP_ID, MISSION_STEP_NAME, LogType.INFO, f"Mission: {mission}")
        self._log(
            MISSION_STEP_ID,
            MISSION_STEP_NAME,
            LogType.INFO,
            f"Agent is working on the mission (max {max_turns} turns)...",
        )

        error = None
        try:
            outcome = await self._call_agent(mission, max_turns, MISSION_STEP_ID, MISSION_STEP_NAME)
        except Exception as e:
            error = str(e)
            self._log(MISSION_STEP_ID, MISSION_STEP_NAME, LogType.ERROR, f"Error: {error}")
        else:
            elapsed = (now_ms() - start_time) / 1000
            if outcome.success:
                self._log(
                    MISSION_STEP_ID,
                    MISSION_STEP_NAME,
                    LogType.SUCCESS,
                    f"Mission complete: {outcome.result} ({elapsed:.1f}s)",
                )
            else:
                error = outcome.result
                self._log(
                    MISSION_STEP_ID,
                    MISSION_STEP_NAME,
                    LogType.ERROR,
                    f"Mission failed: {outcome.result}",
                )

        return WorkflowExecutionResult(
            success=error is None,
            workflow_id=self.workflow.id,
            start_time=start_time,
            end_time=now_ms(),
            steps_executed=1,
            last_step_id=MISSION_STEP_ID,
            error=error,
            error_code=None if error is None else MissionFailureError.code,
            logs=list(self._logs),
        )

    async def _execute_steps(self, start_time: int) -> WorkflowExecutionResult:
        steps_executed = 0
        last_step_id: str | None = None
        failure: WorkflowError | None = None

        if not self.workflow.steps:
            failure = WorkflowValidationError(
                "Nothing to run: provide a mission or at least one step"
            )
            return self._finish(start_time, steps_executed, last_step_id, failure, summary=False)

        current: WorkflowStep | None = self.workflow.steps[0]

        while current is not None:
            if self._aborted:
                break

            if steps_executed >= MAX_STEP_EXECUTIONS:
                failure = GraphLimitExceededError(
                    f"Step execution limit exceeded ({MAX_STEP_EXECUTIONS})",
                    limit=MAX_STEP_EXECUTIONS,
                )
                self._log(current.id, current.name, LogType.ERROR, failure.message)
                break

            last_step_id = current.id
            steps_executed += 1

            success = await self.execute_step_with_retry(current)
            if self._aborted:
                break

            next_step = self.find_next_step(current, success)
            transition = current.on_success if success else current.on_failure
            self._log(
                current.id,
                current.name,
                LogType.CONDITION,
                f"{'Success' if success else 'Failure'} -> {transition}: "
                f"{next_step.name or next_step.id if next_step else 'end of workflow'}",
            )

            if not success and next_step is None:
                failure = StepFailureError(
                    "Step failed with no continuation",
                    step_id=current.id,
                    attempts=current.retry_count + 1,
                )
                break

            current = next_step

        if self._aborted:
            failure = WorkflowAbortedError("Workflow aborted by user")

        return self._finish(start_time, steps_executed, last_step_id, failure)

    def _finish(
        self,
        start_time: int,
        steps_executed: int,
        last_step_id: str | None,
        failure: WorkflowError | None,
        summary: bool = True,
    ) -> WorkflowExecutionResult:
        end_time = now_ms()
        if summary and failure is None:
            self._log(
                WORKFLOW_STEP_ID,
                self.workflow.name,
                LogType.SUCCESS,
                f"Workflow complete ({steps_executed} step(s), "
                f"{(end_time - start_time) / 1000:.1f}s)",
            )
        elif summary:
            self._log(
                WORKFLOW_STEP_ID,
                self.workflow.name,
                LogType.ERROR,
                f"Workflow failed: {failure.message}",
            )

        return WorkflowExecutionResult(
            success=failure is None,
            workflow_id=self.workflow.id,
            start_time=start_time,
            end_time=end_time,
            steps_executed=steps_executed,
            last_step_id=last_step_id,
            error=failure.message if failure else None,
            error_code=failure.code if failure else None,
            logs=list(self._logs),
        )
