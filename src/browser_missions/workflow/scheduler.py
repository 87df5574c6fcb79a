"""Workflow Scheduler - recurring runs for stored workflows.

Every tick the scheduler reloads all workflows from the store, runs the due
ones one after another through the host's run callback, and moves their
``next_run`` forward. A run callback that raises leaves ``next_run`` where it
was, so a failing workflow is retried on every tick until it succeeds.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from browser_missions.errors import MissionsError

from .models import (
    DEFAULT_DAY_OF_WEEK,
    DEFAULT_INTERVAL_MINUTES,
    ScheduleType,
    Workflow,
)
from .store import WorkflowStore

logger = logging.getLogger(__name__)

TICK_SECONDS = 60
_JOB_ID = "check_schedules"


def _to_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _js_weekday(moment: datetime) -> int:
    """Day of week with Sunday=0."""
    return (moment.weekday() + 1) % 7


def calculate_next_run(workflow: Workflow, now: datetime | None = None) -> int | None:
    """Compute the next run time of a workflow in epoch milliseconds.

    Pure function: the workflow is not modified. Daily and weekly schedules
    use local wall-clock time.

    Args:
        workflow: Workflow whose schedule to evaluate
        now: Reference time (default: current local time)

    Returns:
        Epoch milliseconds, or None if the workflow has no enabled schedule
    """
    schedule = workflow.schedule
    if not schedule or not schedule.enabled:
        return None

    now = now or datetime.now()

    if schedule.type == ScheduleType.INTERVAL:
        interval_ms = (schedule.interval_minutes or DEFAULT_INTERVAL_MINUTES) * 60 * 1000
        # A workflow that never ran is due immediately
        return (schedule.last_run or 0) + interval_ms

    hours, minutes = schedule.parsed_time()
    candidate = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)

    if schedule.type == ScheduleType.DAILY:
        if candidate <= now:
            candidate += timedelta(days=1)
        return _to_ms(candidate)

    if schedule.type == ScheduleType.WEEKLY:
        target_day = (
            schedule.day_of_week if schedule.day_of_week is not None else DEFAULT_DAY_OF_WEEK
        )
        days_until = target_day - _js_weekday(candidate)
        if days_until < 0 or (days_until == 0 and candidate <= now):
            days_until += 7
        return _to_ms(candidate + timedelta(days=days_until))

    return None


def next_run_time(workflow: Workflow, now: datetime | None = None) -> datetime | None:
    """Next run as a local datetime, for display. Does not touch the workflow."""
    next_run = calculate_next_run(workflow, now)
    return datetime.fromtimestamp(next_run / 1000) if next_run else None


def format_run_time(epoch_ms: int | None) -> str:
    if not epoch_ms:
        return "none"
    return datetime.fromtimestamp(epoch_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


@dataclass
class SchedulerCallbacks:
    """Host hooks used by the scheduler.

    ``on_workflow_run`` must raise to signal a failed run; returning normally
    counts as success and advances the schedule.
    """

    on_workflow_run: Callable[[Workflow], Awaitable[None]]
    on_log: Callable[[str], None]


class WorkflowScheduler:
    """Tick-based scheduler for stored workflows.

    Meant to be created once per process and started from inside a running
    asyncio event loop.

    Usage:
        scheduler = WorkflowScheduler(store)
        scheduler.start(SchedulerCallbacks(on_workflow_run=run, on_log=print))

        # ... later
        scheduler.stop()
    """

    def __init__(
        self,
        store: WorkflowStore | None = None,
        tick_seconds: int = TICK_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ):
        """Initialize scheduler.

        Args:
            store: Workflow store to read and update (default: a store on
                ``Settings.workflows_dir``)
            tick_seconds: Seconds between schedule checks
            clock: Returns the current local time; replaceable in tests
        """
        self.store = store or WorkflowStore()
        self.tick_seconds = tick_seconds
        self.clock = clock or datetime.now

        self._scheduler: AsyncIOScheduler | None = None
        self._callbacks: SchedulerCallbacks | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._callbacks is not None

    def _log(self, message: str, **extra) -> None:
        logger.info(message, extra=extra)
        if self._callbacks:
            try:
                self._callbacks.on_log(message)
            except Exception as e:
                logger.warning(f"Scheduler log sink failed: {e}")

    def start(self, callbacks: SchedulerCallbacks) -> None:
        """Start the scheduler, replacing any previously armed timer."""
        if self._scheduler is not None:
            self._shutdown_timer()

        self._callbacks = callbacks

        now = self.clock()
        workflows = self.store.load_all()
        for workflow in workflows:
            if workflow.schedule and workflow.schedule.enabled and not workflow.schedule.next_run:
                next_run = calculate_next_run(workflow, now)
                self._persist_next_run(workflow, next_run)

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.check_schedules,
            trigger=IntervalTrigger(seconds=self.tick_seconds),
            id=_JOB_ID,
            name="Check workflow schedules",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()

        self._log("[Scheduler] Scheduler started")

        scheduled = [w for w in workflows if w.is_scheduled]
        if scheduled:
            self._log(f"[Scheduler] Active schedules: {len(scheduled)}")
            for workflow in scheduled:
                if workflow.schedule.next_run:
                    self._log(
                        f"  - {workflow.name}: {format_run_time(workflow.schedule.next_run)}"
                    )

    def stop(self) -> None:
        """Stop the scheduler and drop the callbacks."""
        self._shutdown_timer()
        self._callbacks = None

    def _shutdown_timer(self) -> None:
        if self._scheduler is not None:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Workflow scheduler stopped")

    def _persist_next_run(self, workflow: Workflow, next_run: int | None) -> bool:
        """Store ``next_run`` on the freshest copy of the record.

        Returns False (after logging) if the record could not be written.
        """

        def apply(record: Workflow) -> None:
            if record.schedule is not None:
                record.schedule.next_run = next_run

        workflow.schedule.next_run = next_run
        return self._update(workflow, apply)

    def _update(self, workflow: Workflow, mutator: Callable[[Workflow], None]) -> bool:
        try:
            self.store.update(workflow.id, mutator)
        except (OSError, MissionsError) as e:
            self._log(
                f"[Scheduler] Error: could not save schedule for {workflow.name} - {e}",
                workflow_id=workflow.id,
            )
            return False
        return True

    async def check_schedules(self) -> None:
        """Run every due workflow once. Called on each tick."""
        if not self._callbacks:
            return

        workflows = self.store.load_all()
        now = self.clock()
        now_ms = _to_ms(now)

        for workflow in workflows:
            # stop() may be called from inside a run callback
            if not self._callbacks:
                break

            if not workflow.is_scheduled:
                continue

            if not workflow.schedule.next_run:
                self._persist_next_run(workflow, calculate_next_run(workflow, now))
                continue

            if workflow.schedule.next_run > now_ms:
                continue

            schedule_type = workflow.schedule.type.value
            self._log(
                f"[Scheduler] Running workflow: {workflow.name}",
                workflow_id=workflow.id,
                schedule_type=schedule_type,
            )

            try:
                await self._callbacks.on_workflow_run(workflow)
            except Exception as e:
                self._log(
                    f"[Scheduler] Error: {workflow.name} - {e}",
                    workflow_id=workflow.id,
                    schedule_type=schedule_type,
                )
                continue

            # next_run counts from when the run finished, last_run from the tick start
            finished = self.clock()
            workflow.schedule.last_run = now_ms
            next_run = calculate_next_run(workflow, finished)

            def apply(record: Workflow, next_run=next_run) -> None:
                if record.schedule is not None:
                    record.schedule.last_run = now_ms
                    record.schedule.next_run = next_run

            workflow.schedule.next_run = next_run
            if not self._update(workflow, apply):
                continue

            self._log(
                f"[Scheduler] Done: {workflow.name}, next run: {format_run_time(next_run)}",
                workflow_id=workflow.id,
                schedule_type=schedule_type,
                duration_ms=_to_ms(finished) - now_ms,
            )
