"""
Unit tests for the background scheduler wrapper.
"""

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from progress_api.core import scheduler
from progress_api.core.config import settings


async def _noop() -> str:
    return "done"


async def _boom() -> None:
    raise RuntimeError("boom")


@pytest.fixture
def registry():
    scheduler.clear_registry()
    yield
    scheduler.clear_registry()


class TestSchedulerLifecycle:
    @pytest.mark.asyncio
    async def test_start_schedules_registered_jobs(self, registry):
        scheduler.register_job("noop", _noop, IntervalTrigger(minutes=5))

        try:
            started = await scheduler.start_scheduler()
            assert started is not None
            assert started.get_job("noop") is not None

            [listed] = scheduler.list_registered_jobs()
            assert listed["job_id"] == "noop"
            assert listed["next_run_time"] is not None
        finally:
            await scheduler.stop_scheduler()

        assert scheduler.get_scheduler() is None

    @pytest.mark.asyncio
    async def test_disabled_scheduler_does_not_start(self, registry, monkeypatch):
        monkeypatch.setattr(settings, "scheduler_enabled", False)
        scheduler.register_job("noop", _noop, IntervalTrigger(minutes=5))

        assert await scheduler.start_scheduler() is None
        assert scheduler.get_scheduler() is None
        assert scheduler.list_registered_jobs()[0]["next_run_time"] is None

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self):
        await scheduler.stop_scheduler()


class TestTriggerJobManually:
    @pytest.mark.asyncio
    async def test_returns_job_result(self, registry):
        scheduler.register_job("noop", _noop, IntervalTrigger(minutes=5))

        outcome = await scheduler.trigger_job_manually("noop")

        assert outcome["status"] == "success"
        assert outcome["result"] == "done"

    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(self, registry):
        scheduler.register_job("boom", _boom, IntervalTrigger(minutes=5))

        outcome = await scheduler.trigger_job_manually("boom")

        assert outcome["status"] == "error"
        assert outcome["error"] == "boom"
