"""
Background scheduler.

Two asyncio loops: the recalc queue drain on a fixed interval and the
end-of-day sweep at a local wall-clock time. Every run is contained: a
failing run is logged and the loop continues. Each run is also written to
the job run history with its record counts.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from datetime import UTC, date, datetime, timedelta
from datetime import time as clock_time
from typing import Any

import structlog

from stockledger.application.use_cases.drain_recalc_queue import DrainRecalcQueueUseCase
from stockledger.application.use_cases.end_of_day_sweep import EndOfDaySweepUseCase
from stockledger.config import get_logger, get_settings
from stockledger.config.settings import SchedulerSettings, business_now
from stockledger.core.entities.job_run import JobRun, JobRunStatus, JobTrigger
from stockledger.core.exceptions import StockLedgerError, UnknownJobError
from stockledger.core.interfaces.job_run_store import IJobRunStore

logger = get_logger(__name__)

DRAIN_JOB = "drain"
EOD_JOB = "eod"


@dataclass
class JobState:
    """Bookkeeping for one scheduled job."""

    name: str
    running: bool = False
    runs: int = 0
    last_started_at: datetime | None = None
    last_duration_ms: float | None = None
    last_error: str | None = None
    next_run_at: datetime | None = None


@dataclass
class JobOutcome:
    """Summary of a finished run plus its record counts."""

    summary: dict[str, Any]
    total: int = 0
    successful: int = 0
    failed: int = 0


def seconds_until(at: clock_time, now: datetime) -> float:
    """Seconds from `now` (tz-aware) to the next occurrence of wall-clock `at`."""
    candidate = now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return (candidate.astimezone(UTC) - now.astimezone(UTC)).total_seconds()


class Scheduler:
    """Drives the queue worker and the end-of-day sweep."""

    def __init__(
        self,
        drain: DrainRecalcQueueUseCase | None = None,
        sweep: EndOfDaySweepUseCase | None = None,
        settings: SchedulerSettings | None = None,
        now: Callable[[], datetime] = business_now,
        run_store: IJobRunStore | None = None,
    ):
        self._settings = settings or get_settings().scheduler
        self._run_store = run_store
        self._drain = drain or DrainRecalcQueueUseCase()
        self._sweep = sweep or EndOfDaySweepUseCase()
        self._now = now
        self._tasks: list[asyncio.Task] = []
        self._jobs = {
            DRAIN_JOB: JobState(DRAIN_JOB),
            EOD_JOB: JobState(EOD_JOB),
        }
        self._locks = {name: asyncio.Lock() for name in self._jobs}

    def _get_run_store(self) -> IJobRunStore:
        if self._run_store is None:
            from stockledger.application.services import get_job_run_store

            self._run_store = get_job_run_store()
        return self._run_store

    @property
    def started(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Start both loops. No-op when disabled or already started."""
        if not self._settings.enabled:
            logger.info("scheduler_disabled")
            return
        if self._tasks:
            return

        try:
            await self._get_run_store().fail_unfinished("interrupted by restart")
        except StockLedgerError as e:
            logger.warning("job_run_history_unavailable", error=e.message)

        self._tasks = [
            asyncio.create_task(self._drain_loop(), name="stockledger-drain"),
            asyncio.create_task(self._eod_loop(), name="stockledger-eod"),
        ]
        logger.info(
            "scheduler_started",
            drain_interval_minutes=self._settings.drain_interval_minutes,
            eod_time=self._settings.eod_time,
            timezone=self._settings.timezone,
        )

    async def stop(self) -> None:
        """Cancel the loops and wait for them to finish."""
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("scheduler_stopped")

    async def _drain_loop(self) -> None:
        interval = self._settings.drain_interval_minutes * 60
        while True:
            self._jobs[DRAIN_JOB].next_run_at = self._now() + timedelta(seconds=interval)
            await asyncio.sleep(interval)
            await self._run_contained(
                DRAIN_JOB, lambda: self.run_drain(triggered_by=JobTrigger.SCHEDULE)
            )

    async def _eod_loop(self) -> None:
        while True:
            delay = seconds_until(self._settings.eod_clock, self._now())
            self._jobs[EOD_JOB].next_run_at = self._now() + timedelta(seconds=delay)
            await asyncio.sleep(delay)
            await self._run_contained(
                EOD_JOB, lambda: self.run_eod(triggered_by=JobTrigger.SCHEDULE)
            )

    async def _run_contained(
        self, name: str, job: Callable[[], Awaitable[dict[str, Any]]]
    ) -> None:
        try:
            await job()
        except Exception:
            # Already recorded on the job state; keep the loop alive
            logger.error("scheduled_job_failed", job=name, exc_info=True)

    async def _record_start(self, name: str, triggered_by: JobTrigger) -> int | None:
        try:
            run = await self._get_run_store().start(name, triggered_by)
            return run.id
        except StockLedgerError as e:
            logger.warning("job_run_record_failed", job=name, stage="start", error=e.message)
            return None

    async def _record_finish(
        self,
        name: str,
        run_id: int | None,
        duration_ms: float,
        outcome: JobOutcome | None = None,
        error: str | None = None,
    ) -> None:
        if run_id is None:
            return
        store = self._get_run_store()
        try:
            if outcome is not None:
                await store.complete(
                    run_id,
                    total=outcome.total,
                    successful=outcome.successful,
                    failed=outcome.failed,
                    duration_ms=duration_ms,
                    summary=outcome.summary,
                )
            else:
                await store.fail(run_id, error or "unknown error", duration_ms)
        except StockLedgerError as e:
            logger.warning("job_run_record_failed", job=name, stage="finish", error=e.message)

    async def _run(
        self,
        name: str,
        job: Callable[[], Awaitable[JobOutcome]],
        triggered_by: JobTrigger,
    ) -> dict[str, Any]:
        state = self._jobs[name]
        async with self._locks[name]:
            state.running = True
            state.last_started_at = self._now()
            started = time.perf_counter()
            run_id = await self._record_start(name, triggered_by)
            try:
                with structlog.contextvars.bound_contextvars(job=name):
                    outcome = await job()
            except Exception as e:
                state.last_error = str(e)
                await self._record_finish(
                    name, run_id, (time.perf_counter() - started) * 1000, error=str(e)
                )
                raise
            finally:
                state.running = False
                state.runs += 1
                state.last_duration_ms = (time.perf_counter() - started) * 1000

            state.last_error = None
            await self._record_finish(name, run_id, state.last_duration_ms, outcome=outcome)
            return outcome.summary

    async def run_drain(self, triggered_by: JobTrigger = JobTrigger.MANUAL) -> dict[str, Any]:
        """Drain one batch per company now."""

        async def job() -> JobOutcome:
            results = await self._drain.execute_all()
            summary = {
                "companies": len(results),
                "claimed": sum(r.claimed for r in results),
                "done": sum(r.done for r in results),
                "failed": sum(r.failed for r in results),
                "escalated": sum(r.escalated for r in results),
            }
            return JobOutcome(
                summary,
                total=summary["claimed"],
                successful=summary["done"],
                failed=summary["failed"],
            )

        return await self._run(DRAIN_JOB, job, triggered_by)

    async def run_eod(
        self,
        target_date: date | None = None,
        triggered_by: JobTrigger = JobTrigger.MANUAL,
    ) -> dict[str, Any]:
        """Run the end-of-day sweep now (default: yesterday)."""

        async def job() -> JobOutcome:
            result = await self._sweep.execute(target_date)
            summary = {
                "target_date": result.target_date.isoformat(),
                "companies": result.companies,
                "items": result.items,
                "snapshots_written": result.snapshots_written,
                "failures": [f.details for f in result.failures],
            }
            return JobOutcome(
                summary,
                total=result.items,
                successful=result.items - len(result.failures),
                failed=len(result.failures),
            )

        return await self._run(EOD_JOB, job, triggered_by)

    async def trigger(self, name: str, target_date: date | None = None) -> dict[str, Any]:
        """Run a job by name, outside its schedule."""
        if name == DRAIN_JOB:
            return await self.run_drain()
        if name == EOD_JOB:
            return await self.run_eod(target_date)
        raise UnknownJobError(name, list(self._jobs))

    def status(self) -> dict[str, Any]:
        """Scheduler and per-job status."""
        return {
            "enabled": self._settings.enabled,
            "started": self.started,
            "jobs": [asdict(state) for state in self._jobs.values()],
        }

    async def history(
        self,
        job: str | None = None,
        status: JobRunStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[JobRun], int]:
        """
        Past runs, most recent first, and the total matching the filters.

        Raises:
            UnknownJobError: If `job` is not a scheduler job.
        """
        if job is not None and job not in self._jobs:
            raise UnknownJobError(job, list(self._jobs))
        store = self._get_run_store()
        runs = await store.list_runs(job_name=job, status=status, limit=limit, offset=offset)
        total = await store.count_runs(job_name=job, status=status)
        return runs, total


# Global scheduler instance
_scheduler: Scheduler | None = None


def get_scheduler() -> Scheduler:
    """Get or create the global scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = Scheduler()
    return _scheduler


def reset_scheduler() -> None:
    """Reset scheduler (for testing)."""
    global _scheduler
    _scheduler = None
