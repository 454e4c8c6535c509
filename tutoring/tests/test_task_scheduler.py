"""Tests for the periodic task scheduler."""

import asyncio
from datetime import timedelta
from unittest.mock import patch

import pytest

from tutoring.scheduler import TaskScheduler


HOUR = timedelta(hours=1)


class TestRegister:
    def test_rejects_duplicate_names(self):
        scheduler = TaskScheduler()

        async def task():
            pass

        scheduler.register("job", HOUR, task)
        with pytest.raises(ValueError):
            scheduler.register("job", HOUR, task)

    def test_rejects_non_positive_interval(self):
        scheduler = TaskScheduler()

        async def task():
            pass

        with pytest.raises(ValueError):
            scheduler.register("job", timedelta(0), task)


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_returns_task_result_and_records_state(self):
        scheduler = TaskScheduler()

        async def task():
            return {"sent": 2}

        scheduler.register("job", HOUR, task)
        result = await scheduler.run_once("job")

        assert result == {"sent": 2}
        state = scheduler.status()["job"]
        assert state["runs"] == 1
        assert state["last_result"] == {"sent": 2}
        assert state["last_error"] is None
        assert state["running"] is False

    @pytest.mark.asyncio
    async def test_failure_is_caught_logged_and_reported(self):
        scheduler = TaskScheduler()

        async def task():
            raise RuntimeError("database unavailable")

        scheduler.register("job", HOUR, task)
        with patch("tutoring.scheduler.sentry_sdk") as mock_sentry:
            result = await scheduler.run_once("job")

        assert result is None
        state = scheduler.status()["job"]
        assert state["failures"] == 1
        assert state["last_error"] == "database unavailable"
        mock_sentry.capture_exception.assert_called_once()

    @pytest.mark.asyncio
    async def test_overlapping_run_of_same_job_is_skipped(self):
        scheduler = TaskScheduler()
        started = asyncio.Event()
        release = asyncio.Event()
        calls = 0

        async def slow():
            nonlocal calls
            calls += 1
            started.set()
            await release.wait()

        scheduler.register("slow", HOUR, slow)
        first = asyncio.create_task(scheduler.run_once("slow"))
        await started.wait()

        await scheduler.run_once("slow")  # Skipped, returns immediately
        release.set()
        await first

        assert calls == 1
        assert scheduler.status()["slow"]["skipped"] == 1

    @pytest.mark.asyncio
    async def test_unknown_job_raises(self):
        scheduler = TaskScheduler()
        with pytest.raises(KeyError):
            await scheduler.run_once("missing")


class TestStartStop:
    @pytest.mark.asyncio
    async def test_every_job_runs_immediately_at_start(self):
        scheduler = TaskScheduler()
        ran = {"a": asyncio.Event(), "b": asyncio.Event()}

        def make_task(name):
            async def task():
                ran[name].set()

            return task

        scheduler.register("a", HOUR, make_task("a"))
        scheduler.register("b", HOUR, make_task("b"))
        scheduler.start()
        try:
            await asyncio.wait_for(ran["a"].wait(), timeout=5)
            await asyncio.wait_for(ran["b"].wait(), timeout=5)
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_failing_job_does_not_affect_others(self):
        scheduler = TaskScheduler()
        healthy_ran = asyncio.Event()
        failing_ran = asyncio.Event()

        async def failing():
            failing_ran.set()
            raise RuntimeError("boom")

        async def healthy():
            healthy_ran.set()

        scheduler.register("failing", HOUR, failing)
        scheduler.register("healthy", HOUR, healthy)
        with patch("tutoring.scheduler.sentry_sdk"):
            scheduler.start()
            try:
                await asyncio.wait_for(failing_ran.wait(), timeout=5)
                await asyncio.wait_for(healthy_ran.wait(), timeout=5)
            finally:
                await scheduler.stop()

        assert scheduler.status()["failing"]["failures"] == 1
        assert scheduler.status()["healthy"]["failures"] == 0

    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight_run(self):
        """stop() returns only after the running tick completes."""
        scheduler = TaskScheduler()
        started = asyncio.Event()
        release = asyncio.Event()
        finished = []

        async def slow():
            started.set()
            await release.wait()
            finished.append(True)

        scheduler.register("slow", HOUR, slow)
        scheduler.start()
        await asyncio.wait_for(started.wait(), timeout=5)

        stopping = asyncio.create_task(scheduler.stop())
        await asyncio.sleep(0.05)
        assert not stopping.done()

        release.set()
        await asyncio.wait_for(stopping, timeout=5)

        assert finished == [True]
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_no_ticks_after_stop(self):
        scheduler = TaskScheduler()
        calls = 0
        first_run = asyncio.Event()

        async def task():
            nonlocal calls
            calls += 1
            first_run.set()

        scheduler.register("job", timedelta(seconds=1), task)
        scheduler.start()
        await asyncio.wait_for(first_run.wait(), timeout=5)
        await scheduler.stop()
        calls_at_stop = calls

        await asyncio.sleep(1.5)

        assert calls == calls_at_stop
        assert await scheduler.run_once("job") is None

    @pytest.mark.asyncio
    async def test_stop_timeout_gives_up_on_stuck_job(self):
        scheduler = TaskScheduler()
        started = asyncio.Event()

        async def stuck():
            started.set()
            await asyncio.sleep(3600)

        scheduler.register("stuck", HOUR, stuck)
        scheduler.start()
        await asyncio.wait_for(started.wait(), timeout=5)

        await asyncio.wait_for(scheduler.stop(timeout=0.1), timeout=5)

        assert scheduler.is_running is False
