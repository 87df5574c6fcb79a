"""Workflow service - host-side entry point for running workflows.

Both "run now" requests and scheduled runs go through here, so one place
knows which workflows are in flight and can abort them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from browser_missions.errors import (
    ScheduleInvocationError,
    WorkflowBusyError,
    WorkflowNotFoundError,
)

from .executor import STEP_RETRY_DELAY_SECONDS, WorkflowExecutor
from .models import Workflow
from .results import WorkflowExecutionResult, WorkflowLogCallback
from .runner import AgentRunner
from .scheduler import SchedulerCallbacks
from .store import WorkflowStore

logger = logging.getLogger(__name__)

ResultCallback = Callable[[WorkflowExecutionResult], None]


class WorkflowService:
    """Runs workflows against an agent runner and tracks in-flight runs.

    A workflow id can only be in flight once: a second run request for the
    same workflow, whether manual or scheduled, is refused with
    :class:`WorkflowBusyError` while the first is still going.
    """

    def __init__(
        self,
        agent_runner: AgentRunner,
        store: WorkflowStore | None = None,
        on_log: WorkflowLogCallback | None = None,
        on_result: ResultCallback | None = None,
        retry_delay: float = STEP_RETRY_DELAY_SECONDS,
    ):
        self.agent_runner = agent_runner
        self.store = store or WorkflowStore()
        self.on_log = on_log
        self.on_result = on_result
        self.retry_delay = retry_delay
        self._running: dict[str, WorkflowExecutor] = {}

    @property
    def running_ids(self) -> list[str]:
        return list(self._running)

    def is_running(self, workflow_id: str) -> bool:
        return workflow_id in self._running

    def abort(self, workflow_id: str) -> bool:
        """Ask an in-flight run to stop. Returns False if it is not running."""
        executor = self._running.get(workflow_id)
        if executor is None:
            return False
        executor.abort()
        logger.info(f"Abort requested for workflow {workflow_id}")
        return True

    async def run(self, workflow: Workflow | str) -> WorkflowExecutionResult:
        """Run a workflow now.

        Args:
            workflow: Workflow object or the id of a stored workflow

        Raises:
            WorkflowNotFoundError: If the id is not in the store
            WorkflowBusyError: If the workflow is already running
        """
        if isinstance(workflow, str):
            loaded = self.store.load(workflow)
            if loaded is None:
                raise WorkflowNotFoundError(f"Workflow not found: {workflow}")
            workflow = loaded

        if workflow.id in self._running:
            raise WorkflowBusyError(
                f"Workflow is already running: {workflow.name}", {"workflow_id": workflow.id}
            )

        executor = WorkflowExecutor(
            workflow,
            self.agent_runner,
            on_log=self.on_log,
            retry_delay=self.retry_delay,
        )
        self._running[workflow.id] = executor
        try:
            result = await executor.execute()
        finally:
            self._running.pop(workflow.id, None)

        if self.on_result:
            try:
                self.on_result(result)
            except Exception as e:
                logger.warning(f"Result callback failed for {workflow.id}: {e}")

        return result

    async def run_scheduled(self, workflow: Workflow) -> None:
        """Scheduler run callback.

        Raises:
            ScheduleInvocationError: If the run did not succeed, so the
                scheduler keeps the workflow due
        """
        try:
            result = await self.run(workflow)
        except WorkflowBusyError as e:
            raise ScheduleInvocationError(e.message, workflow_id=workflow.id, cause=e.code) from e

        if not result.success:
            raise ScheduleInvocationError(
                result.error or "Workflow failed",
                workflow_id=workflow.id,
                cause=result.error_code,
            )

    def callbacks(self, on_log: Callable[[str], None] | None = None) -> SchedulerCallbacks:
        """Build scheduler callbacks that run workflows through this service."""
        return SchedulerCallbacks(
            on_workflow_run=self.run_scheduled,
            on_log=on_log or logger.info,
        )
