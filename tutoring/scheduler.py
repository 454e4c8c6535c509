"""
Periodic task scheduler built on APScheduler.

Each registered task becomes an interval job that runs once immediately at
start and then on its cadence. A run that would overlap the previous run of
the same task is skipped rather than queued. Failures are logged, reported to
Sentry and kept in the job's state; they never stop other jobs.

APScheduler's executor cancels coroutine jobs that are still running when the
scheduler shuts down, so ``stop()`` first removes every job, then waits for
the in-flight runs, and only then shuts APScheduler down.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable

import pytz
import sentry_sdk
from apscheduler.events import EVENT_JOB_MAX_INSTANCES, JobSubmissionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

# Seconds a run may start late (busy event loop) before APScheduler drops it
MISFIRE_GRACE_SECONDS = 60


@dataclass
class ScheduledTask:
    """A registered task and the outcome of its recent runs."""

    name: str
    interval: timedelta
    task: Callable[[], Awaitable[Any]]
    last_started_at: datetime | None = None
    last_duration: float | None = None
    last_result: Any = None
    last_error: str | None = None
    runs: int = 0
    failures: int = 0
    skipped: int = 0


class TaskScheduler:
    """Owns a set of independent periodic async tasks."""

    def __init__(self):
        self._tasks: dict[str, ScheduledTask] = {}
        self._running: dict[str, asyncio.Task] = {}
        self._scheduler: AsyncIOScheduler | None = None
        self._stopping = False

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None

    @property
    def task_names(self) -> list[str]:
        return list(self._tasks)

    def register(
        self,
        name: str,
        interval: timedelta,
        task: Callable[[], Awaitable[Any]],
    ) -> None:
        """
        Add a periodic task.

        Args:
            name: Unique task name, used in logs and as the APScheduler job id
            interval: Time between runs
            task: Zero-argument coroutine function

        Raises:
            ValueError: Duplicate name or non-positive interval
        """
        if name in self._tasks:
            raise ValueError(f"Task {name!r} is already registered")
        if interval <= timedelta(0):
            raise ValueError(f"Interval for {name!r} must be positive, got {interval}")

        scheduled = ScheduledTask(name=name, interval=interval, task=task)
        self._tasks[name] = scheduled
        if self._scheduler is not None:
            self._add_job(scheduled)

    def start(self) -> None:
        """
        Start running every registered task.

        Must be called from within a running event loop (e.g. FastAPI lifespan).
        """
        if self._scheduler is not None:
            logger.warning("Task scheduler already started")
            return

        self._stopping = False
        self._scheduler = AsyncIOScheduler(
            timezone=pytz.utc,
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,
                "misfire_grace_time": MISFIRE_GRACE_SECONDS,
            },
        )
        self._scheduler.add_listener(self._on_max_instances, EVENT_JOB_MAX_INSTANCES)
        for scheduled in self._tasks.values():
            self._add_job(scheduled)

        self._scheduler.start()
        logger.info(f"Task scheduler started with {len(self._tasks)} tasks")

    def _add_job(self, scheduled: ScheduledTask) -> None:
        self._scheduler.add_job(
            self._run_task,
            trigger=IntervalTrigger(
                seconds=scheduled.interval.total_seconds(), timezone=pytz.utc
            ),
            args=[scheduled.name],
            id=scheduled.name,
            name=scheduled.name,
            next_run_time=datetime.now(pytz.utc),  # Run immediately at start
            replace_existing=True,
        )

    def _on_max_instances(self, event: JobSubmissionEvent) -> None:
        scheduled = self._tasks.get(event.job_id)
        if scheduled is not None:
            scheduled.skipped += 1
            logger.warning(f'Skipping "{event.job_id}": previous run still in progress')

    async def _run_task(self, name: str) -> bool:
        """
        Run a task once with failure isolation.

        Returns:
            False if the run was skipped (stopping, or already running)
        """
        scheduled = self._tasks[name]
        if self._stopping:
            return False
        if name in self._running:
            scheduled.skipped += 1
            logger.warning(f'Skipping "{name}": previous run still in progress')
            return False

        self._running[name] = asyncio.current_task()
        scheduled.last_started_at = datetime.now(pytz.utc)
        started = time.monotonic()
        try:
            scheduled.last_result = await scheduled.task()
            scheduled.last_error = None
        except Exception as e:
            scheduled.failures += 1
            scheduled.last_error = str(e) or type(e).__name__
            logger.error(f'Error running scheduled task "{name}": {e}')
            sentry_sdk.capture_exception(e)
        finally:
            scheduled.runs += 1
            scheduled.last_duration = time.monotonic() - started
            self._running.pop(name, None)
        return True

    async def run_once(self, name: str) -> Any:
        """
        Run a registered task now, outside its cadence.

        Follows the same isolation and overlap rules as scheduled runs.

        Returns:
            The task's result, or None if it failed or was skipped

        Raises:
            KeyError: Unknown task name
        """
        if name not in self._tasks:
            raise KeyError(f"Unknown task {name!r}")
        ran = await self._run_task(name)
        scheduled = self._tasks[name]
        if not ran or scheduled.last_error is not None:
            return None
        return scheduled.last_result

    async def stop(self, timeout: float | None = None) -> None:
        """
        Stop scheduling and wait for in-flight runs to finish.

        Args:
            timeout: Seconds to wait for in-flight runs; None waits indefinitely
        """
        self._stopping = True
        if self._scheduler is not None:
            self._scheduler.remove_all_jobs()

        current = asyncio.current_task()
        in_flight = [task for task in self._running.values() if task is not current]
        if in_flight:
            logger.info(f"Waiting for {len(in_flight)} running task(s) to finish")
            _, pending = await asyncio.wait(in_flight, timeout=timeout)
            if pending:
                logger.warning(
                    f"{len(pending)} task(s) still running after {timeout}s: "
                    f"{', '.join(self._running)}"
                )

        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        logger.info("Task scheduler stopped")

    def status(self) -> dict[str, dict]:
        """Per-task state for health checks and operator tooling."""
        report = {}
        for name, scheduled in self._tasks.items():
            next_run = None
            if self._scheduler is not None:
                job = self._scheduler.get_job(name)
                if job is not None and job.next_run_time is not None:
                    next_run = job.next_run_time.isoformat()

            report[name] = {
                "interval_seconds": scheduled.interval.total_seconds(),
                "running": name in self._running,
                "last_started_at": (
                    scheduled.last_started_at.isoformat()
                    if scheduled.last_started_at
                    else None
                ),
                "last_duration": scheduled.last_duration,
                "last_result": scheduled.last_result,
                "last_error": scheduled.last_error,
                "runs": scheduled.runs,
                "failures": scheduled.failures,
                "skipped": scheduled.skipped,
                "next_run_time": next_run,
            }
        return report
