"""
Admissions Background Jobs

Scheduled tasks enforcing the data-retention policy:
1. Retention sweep (daily): delete access codes older than 30 days, resolved
   applications untouched for 30 days, and unreviewed applications older
   than 90 days
2. Redeemed-record purge (every minute): once an access code has been used
   for account creation, delete that email's application and codes

Design Principles:
- Jobs are idempotent (deleting rows that are already gone is a no-op)
- Jobs handle their own database sessions
- Each delete runs in its own transaction; one failing does not undo or
  stop the others
- The redeemed purge is driven by ``used_at`` in the database, so a restart
  between redemption and cleanup loses nothing

Schedule:
- Retention sweep runs daily at RETENTION_SWEEP_HOUR (UTC)
- Redeemed purge runs every minute
- Both can be triggered manually via /debug/jobs/{job_id}/trigger or
  scripts/run_retention_sweep.py
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession

from progress_api.core.config import settings
from progress_api.core.database import async_session_maker
from progress_api.core.scheduler import register_job
from progress_api.modules.admissions import repository

logger = logging.getLogger(__name__)

# Retention policy
ACCESS_CODE_RETENTION_DAYS = 30
RESOLVED_APPLICATION_RETENTION_DAYS = 30
UNREVIEWED_APPLICATION_RETENTION_DAYS = 90
REDEEMED_CLEANUP_DELAY_SECONDS = 60

# Job IDs for registration and manual triggering
JOB_ID_RETENTION_SWEEP = "admissions_retention_sweep"
JOB_ID_PURGE_REDEEMED = "admissions_purge_redeemed"

DeleteFunc = Callable[[AsyncSession, datetime], Awaitable[int]]


async def _run_sweep_step(delete_func: DeleteFunc, cutoff: datetime) -> int:
    """Run one bulk delete in its own transaction."""
    async with async_session_maker() as db:
        try:
            deleted = await delete_func(db, cutoff)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
    return deleted


async def run_retention_sweep() -> dict[str, Any]:
    """
    Purge expired and resolved admission records.

    Best-effort: a failing step is logged and the sweep moves on.

    Returns:
        Dict with job execution summary including:
        - executed_at: When the job ran
        - deleted: Rows removed per step
        - errors: Steps that failed, with the error message
        - status: "success", or "partial" if any step failed
    """
    executed_at = datetime.now(UTC)

    steps: list[tuple[str, DeleteFunc, datetime]] = [
        (
            "access_codes",
            repository.delete_access_codes_created_before,
            executed_at - timedelta(days=ACCESS_CODE_RETENTION_DAYS),
        ),
        (
            "resolved_applications",
            repository.delete_resolved_applications_updated_before,
            executed_at - timedelta(days=RESOLVED_APPLICATION_RETENTION_DAYS),
        ),
        (
            "unreviewed_applications",
            repository.delete_unreviewed_applications_created_before,
            executed_at - timedelta(days=UNREVIEWED_APPLICATION_RETENTION_DAYS),
        ),
    ]

    logger.info("Starting admissions retention sweep")

    results: dict[str, Any] = {
        "executed_at": executed_at.isoformat(),
        "deleted": {},
        "errors": [],
    }

    for name, delete_func, cutoff in steps:
        try:
            deleted = await _run_sweep_step(delete_func, cutoff)
            results["deleted"][name] = deleted
            logger.info(f"Retention sweep removed {deleted} {name} (cutoff {cutoff.isoformat()})")
        except Exception as e:
            logger.error(f"Retention sweep step {name} failed: {e}", exc_info=True)
            results["errors"].append({"step": name, "error": str(e)})

    results["status"] = "partial" if results["errors"] else "success"

    logger.info(
        f"Retention sweep completed ({results['status']}). "
        f"Deleted: {results['deleted']}, Errors: {len(results['errors'])}"
    )

    return results


async def purge_redeemed_records() -> dict[str, Any]:
    """
    Delete the application and access codes of every email whose code was
    used more than REDEEMED_CLEANUP_DELAY_SECONDS ago.

    Returns:
        Dict with executed_at, emails_processed, applications_deleted,
        access_codes_deleted and total_errors
    """
    executed_at = datetime.now(UTC)
    used_before = executed_at - timedelta(seconds=REDEEMED_CLEANUP_DELAY_SECONDS)

    results: dict[str, Any] = {
        "executed_at": executed_at.isoformat(),
        "emails_processed": 0,
        "applications_deleted": 0,
        "access_codes_deleted": 0,
        "total_errors": 0,
    }

    async with async_session_maker() as db:
        emails = await repository.get_redeemed_emails(db, used_before)

    if not emails:
        return results

    logger.info(f"Purging records for {len(emails)} redeemed access codes")

    for email in emails:
        try:
            async with async_session_maker() as db:
                applications, codes = await repository.delete_records_for_email(db, email)
                await db.commit()
            results["emails_processed"] += 1
            results["applications_deleted"] += applications
            results["access_codes_deleted"] += codes
        except Exception as e:
            logger.error(f"Error purging redeemed records: {e}", exc_info=True)
            results["total_errors"] += 1

    logger.info(
        f"Redeemed purge completed. Applications: {results['applications_deleted']}, "
        f"Codes: {results['access_codes_deleted']}, Errors: {results['total_errors']}"
    )

    return results


def register_admission_jobs() -> None:
    """
    Register the admissions background jobs with the scheduler.

    Call during application startup, before the scheduler is started.
    """
    logger.info("Registering admissions background jobs...")

    register_job(
        job_id=JOB_ID_RETENTION_SWEEP,
        func=run_retention_sweep,
        trigger=CronTrigger(hour=settings.retention_sweep_hour, minute=0, timezone="UTC"),
    )
    logger.info(
        f"Registered job: {JOB_ID_RETENTION_SWEEP} "
        f"(daily at {settings.retention_sweep_hour:02d}:00 UTC)"
    )

    register_job(
        job_id=JOB_ID_PURGE_REDEEMED,
        func=purge_redeemed_records,
        trigger=IntervalTrigger(minutes=1),
    )
    logger.info(f"Registered job: {JOB_ID_PURGE_REDEEMED} (interval: 1 minute)")
