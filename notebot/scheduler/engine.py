"""CronScheduler — due-checks persisted cron jobs and launches workflow runs."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from apscheduler.triggers.cron import CronTrigger

from notebot.config import settings
from notebot.scheduler.models import utcnow
from notebot.scheduler.ticker import TICK_INTERVAL_SECONDS, TickMessage, TickSource

if TYPE_CHECKING:
    from collections.abc import Callable

    from notebot.scheduler.models import CronJobDefinition, CronJobRecord
    from notebot.scheduler.store import CronStore
    from notebot.workflows.engine import WorkflowEngine

logger = logging.getLogger(__name__)


def next_occurrence(schedule: str, after: datetime, timezone: str = "UTC") -> datetime | None:
    """Return the first fire time of *schedule* strictly after *after*."""
    trigger = CronTrigger.from_crontab(schedule, timezone=timezone)
    return trigger.get_next_fire_time(None, after + timedelta(microseconds=1))


def is_due(record: CronJobRecord, now: datetime, timezone: str = "UTC") -> bool:
    """Whether a scheduled occurrence falls between the last run and *now*.

    A job that has never run is always due. Any number of missed
    occurrences collapse into a single due result.
    """
    last_run = record.last_run
    if last_run is None:
        return True
    upcoming = next_occurrence(record.schedule, last_run, timezone)
    if upcoming is None:
        return False
    return upcoming <= now


class CronScheduler:
    """Runs registered cron jobs against a :class:`WorkflowEngine`.

    Each tick lists enabled jobs from the store and launches every due job
    that is not already running. Launches are fire-and-forget: the tick
    handler never waits for a job to finish.

    Args:
        store: CronStore for job rows and last-run timestamps.
        engine: Workflow engine used to start job runs.
        timezone: IANA timezone cron expressions are evaluated in.
        tick_interval: Seconds between ticks of the timer thread.
        job_timeout: Optional cap in seconds on a single job run. None
            means a hung job keeps its running slot until the process exits.
        clock: Returns the current time (UTC-aware). Overridable for tests.
    """

    def __init__(
        self,
        store: CronStore,
        engine: WorkflowEngine,
        *,
        timezone: str | None = None,
        tick_interval: float = TICK_INTERVAL_SECONDS,
        job_timeout: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._engine = engine
        self._timezone = timezone or settings.scheduler_timezone
        self._tick_interval = tick_interval
        self._job_timeout = job_timeout
        self._clock = clock
        self._jobs: list[CronJobDefinition] = []
        self._running: set[str] = set()
        self._tasks: set[asyncio.Task[None]] = set()
        self._ticks: asyncio.Queue[TickMessage] | None = None
        self._tick_source: TickSource | None = None
        self._consumer: asyncio.Task[None] | None = None

    @property
    def started(self) -> bool:
        return self._tick_source is not None

    @property
    def running_jobs(self) -> frozenset[str]:
        """IDs of jobs currently executing."""
        return frozenset(self._running)

    # -- Lifecycle -------------------------------------------------------------

    def register(self, job: CronJobDefinition) -> None:
        """Add a job definition. Call before :meth:`start`."""
        self._jobs.append(job)

    async def start(self) -> None:
        """Initialize the store, upsert jobs, catch up, then start ticking."""
        await self._store.initialize()
        for job in self._jobs:
            await self._store.upsert(job)

        # Catch up on anything missed while the process was down.
        await self.handle_tick()

        loop = asyncio.get_running_loop()
        self._ticks = asyncio.Queue()
        self._consumer = asyncio.create_task(self._consume_ticks(), name="cron-tick-consumer")
        self._tick_source = TickSource(loop, self._ticks, self._tick_interval)
        self._tick_source.start()
        logger.info(
            "Cron scheduler started with %d job(s) (tz=%s)", len(self._jobs), self._timezone
        )

    async def stop(self) -> None:
        """Stop ticking. In-flight job runs are left to finish."""
        if self._tick_source is not None:
            self._tick_source.stop()
            self._tick_source = None
        if self._consumer is not None:
            self._consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._consumer
            self._consumer = None
        logger.info("Cron scheduler stopped (%d job(s) still running)", len(self._running))

    async def wait_idle(self) -> None:
        """Wait for every launched job run to complete."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- Ticks -----------------------------------------------------------------

    async def _consume_ticks(self) -> None:
        assert self._ticks is not None
        while True:
            message = await self._ticks.get()
            if message == "started":
                logger.debug("Tick source reported started")
                continue
            try:
                await self.handle_tick()
            except Exception:
                logger.exception("Cron tick failed")

    async def handle_tick(self, now: datetime | None = None) -> list[str]:
        """Launch every enabled, due, not-running job. Returns launched IDs."""
        now = now or self._clock()
        # Rows read below may predate a run that finishes during the read.
        running_at_start = set(self._running)
        records = await self._store.list_enabled()
        launched: list[str] = []
        for record in records:
            if record.job_id in self._running or record.job_id in running_at_start:
                logger.debug("Job %s still running, skipping", record.job_id)
                continue
            try:
                due = is_due(record, now, self._timezone)
            except ValueError:
                logger.exception(
                    "Invalid schedule for job %s: %r", record.job_id, record.schedule
                )
                continue
            if due:
                self._launch(record, now)
                launched.append(record.job_id)
        return launched

    # -- Execution -------------------------------------------------------------

    def _launch(self, record: CronJobRecord, now: datetime) -> None:
        self._running.add(record.job_id)
        task = asyncio.create_task(self._run_job(record, now), name=f"cron:{record.job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_job(self, record: CronJobRecord, now: datetime) -> None:
        """Run one job. ``last_run_at`` is stamped with *now*, even on failure."""
        job_id = record.job_id
        logger.info("Running cron job %s (workflow=%s)", job_id, record.workflow_id)
        try:
            workflow = self._engine.get_workflow(record.workflow_id)
            run = workflow.create_run()
            if self._job_timeout:
                result = await asyncio.wait_for(
                    run.start(record.input_data), timeout=self._job_timeout
                )
            else:
                result = await run.start(record.input_data)
            logger.info("Cron job %s finished: status=%s", job_id, result.status)
        except Exception:
            logger.exception("Cron job %s failed", job_id)
        finally:
            try:
                await self._store.record_run(job_id, now)
            except Exception:
                logger.exception("Failed to record last run for cron job %s", job_id)
            self._running.discard(job_id)
