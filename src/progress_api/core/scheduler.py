"""
Background Job Scheduler

An APScheduler ``AsyncIOScheduler`` running inside the API process, plus a
registry of named jobs that can also be run on demand (debug endpoints,
tests, the retention script).

Jobs are plain coroutine functions that open their own database sessions
and are safe to repeat. A job raising is logged by the listener; the
scheduler keeps running.

Lifecycle:
    register_job(...)          # any time; before start is fine
    await start_scheduler()    # schedules everything registered so far
    await stop_scheduler()     # waits for running jobs

Set SCHEDULER_ENABLED=false when retention runs from external cron
(scripts/run_retention_sweep.py) or when several API workers share one
database and only one should sweep.
"""

import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, EVENT_JOB_MISSED
from apscheduler.events import JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

from progress_api.core.config import settings

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Coroutine[Any, Any, Any]]

# One run at a time per job; missed runs collapse into one if within 5 minutes
JOB_DEFAULTS = {
    "coalesce": True,
    "max_instances": 1,
    "misfire_grace_time": 300,
}


@dataclass(frozen=True)
class Job:
    id: str
    func: JobFunc
    trigger: BaseTrigger

    def describe(self) -> dict[str, Any]:
        return {"job_id": self.id, "trigger": str(self.trigger)}


_jobs: dict[str, Job] = {}
_scheduler: AsyncIOScheduler | None = None


def _on_job_event(event: JobExecutionEvent) -> None:
    if event.code == EVENT_JOB_MISSED:
        logger.warning(f"Job {event.job_id} missed its run at {event.scheduled_run_time}")
    elif event.exception:
        logger.error(f"Job {event.job_id} raised: {event.exception}", exc_info=event.exception)
    else:
        logger.info(f"Job {event.job_id} finished")


def _schedule(scheduler: AsyncIOScheduler, job: Job) -> None:
    scheduler.add_job(job.func, trigger=job.trigger, id=job.id, replace_existing=True)
    logger.info(f"Scheduled job {job.id} ({job.trigger})")


def register_job(job_id: str, func: JobFunc, trigger: BaseTrigger) -> None:
    """
    Add or replace a named job.

    If the scheduler is already running the job is scheduled at once,
    otherwise on ``start_scheduler``.
    """
    job = Job(id=job_id, func=func, trigger=trigger)
    _jobs[job_id] = job
    if _scheduler is not None:
        _schedule(_scheduler, job)


def clear_registry() -> None:
    _jobs.clear()


def get_scheduler() -> AsyncIOScheduler | None:
    return _scheduler


async def start_scheduler() -> AsyncIOScheduler | None:
    """
    Start the scheduler with every registered job.

    Returns None without starting anything when SCHEDULER_ENABLED is false.
    Calling it again while running returns the running instance.
    """
    global _scheduler

    if not settings.scheduler_enabled:
        logger.info(f"Scheduler disabled; {len(_jobs)} jobs available for manual runs only")
        return None

    if _scheduler is not None and _scheduler.running:
        return _scheduler

    _scheduler = AsyncIOScheduler(timezone="UTC", job_defaults=JOB_DEFAULTS)
    _scheduler.add_listener(
        _on_job_event, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR | EVENT_JOB_MISSED
    )
    for job in _jobs.values():
        _schedule(_scheduler, job)
    _scheduler.start()

    logger.info(f"Scheduler started with {len(_jobs)} jobs")
    return _scheduler


async def stop_scheduler() -> None:
    global _scheduler

    if _scheduler is None:
        return
    if _scheduler.running:
        _scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")
    _scheduler = None


async def trigger_job_manually(job_id: str) -> dict[str, Any]:
    """
    Run a registered job now, outside the scheduler.

    A job failure is reported in the returned dict, not raised.

    Returns:
        job_id, executed_at and status ("success" or "error"), plus the
        job's return value under "result" or the message under "error"

    Raises:
        ValueError: Unknown job_id
    """
    job = _jobs.get(job_id)
    if job is None:
        raise ValueError(f"Unknown job {job_id!r}. Registered: {sorted(_jobs)}")

    outcome: dict[str, Any] = {
        "job_id": job_id,
        "executed_at": datetime.now(UTC).isoformat(),
    }

    logger.info(f"Running job {job_id} on demand")
    try:
        outcome["result"] = await job.func()
        outcome["status"] = "success"
    except Exception as e:
        logger.error(f"On-demand run of {job_id} failed: {e}", exc_info=True)
        outcome["status"] = "error"
        outcome["error"] = str(e)

    return outcome


def list_registered_jobs() -> list[dict[str, Any]]:
    """Registered jobs with their trigger and, when scheduled, next run time."""
    listed = []
    for job in _jobs.values():
        info = job.describe()
        scheduled = _scheduler.get_job(job.id) if _scheduler is not None else None
        next_run = scheduled.next_run_time if scheduled is not None else None
        info["next_run_time"] = next_run.isoformat() if next_run else None
        listed.append(info)
    return listed
