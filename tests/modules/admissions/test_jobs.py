"""
Unit tests for admissions background jobs.

These tests cover:
- The retention sweep windows and its per-step isolation
- The delayed purge of redeemed records
- Job registration with the scheduler
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from progress_api.core import scheduler
from progress_api.modules.admissions import jobs, repository
from progress_api.modules.admissions.models import ApplicationStatus

from .factories import make_access_code, make_application


@pytest.fixture
def job_sessions(session_maker):
    """Point the jobs at the test database."""
    with patch.object(jobs, "async_session_maker", session_maker):
        yield session_maker


@pytest.fixture
def clean_registry():
    scheduler.clear_registry()
    yield
    scheduler.clear_registry()


class TestRunRetentionSweep:
    """Tests for run_retention_sweep."""

    @pytest.mark.asyncio
    async def test_code_older_than_30_days_removed(self, db_session, job_sessions):
        now = datetime.now(UTC)
        await make_access_code(db_session, code="OLDCODE2", created_at=now - timedelta(days=31))
        await make_access_code(db_session, code="NEWCODE2", created_at=now - timedelta(days=29))

        result = await jobs.run_retention_sweep()

        assert result["status"] == "success"
        assert result["deleted"]["access_codes"] == 1
        assert not await repository.access_code_exists(db_session, "OLDCODE2")
        assert await repository.access_code_exists(db_session, "NEWCODE2")

    @pytest.mark.asyncio
    async def test_sweep_applies_each_window(self, db_session, job_sessions):
        now = datetime.now(UTC)
        await make_application(
            db_session,
            email="resolved@example.com",
            status=ApplicationStatus.REJECTED,
            updated_at=now - timedelta(days=31),
        )
        await make_application(
            db_session,
            email="stale@example.com",
            created_at=now - timedelta(days=91),
        )
        await make_application(
            db_session,
            email="waiting@example.com",
            created_at=now - timedelta(days=60),
        )

        result = await jobs.run_retention_sweep()

        assert result["deleted"] == {
            "access_codes": 0,
            "resolved_applications": 1,
            "unreviewed_applications": 1,
        }
        assert result["errors"] == []
        assert await repository.get_by_email(db_session, "waiting@example.com") is not None

    @pytest.mark.asyncio
    async def test_failing_step_does_not_stop_the_others(self, db_session, job_sessions):
        now = datetime.now(UTC)
        await make_access_code(db_session, code="OLDCODE2", created_at=now - timedelta(days=31))
        await make_application(
            db_session, email="stale@example.com", created_at=now - timedelta(days=91)
        )

        with patch.object(
            repository,
            "delete_resolved_applications_updated_before",
            AsyncMock(side_effect=RuntimeError("lock timeout")),
        ):
            result = await jobs.run_retention_sweep()

        assert result["status"] == "partial"
        assert result["errors"] == [{"step": "resolved_applications", "error": "lock timeout"}]
        assert result["deleted"]["access_codes"] == 1
        assert result["deleted"]["unreviewed_applications"] == 1

    @pytest.mark.asyncio
    async def test_running_twice_is_harmless(self, db_session, job_sessions):
        now = datetime.now(UTC)
        await make_access_code(db_session, code="OLDCODE2", created_at=now - timedelta(days=31))

        first = await jobs.run_retention_sweep()
        second = await jobs.run_retention_sweep()

        assert first["deleted"]["access_codes"] == 1
        assert second["deleted"]["access_codes"] == 0
        assert second["status"] == "success"


class TestPurgeRedeemedRecords:
    """Tests for purge_redeemed_records."""

    @pytest.mark.asyncio
    async def test_purges_after_delay(self, db_session, job_sessions):
        now = datetime.now(UTC)
        await make_application(db_session, status=ApplicationStatus.APPROVED)
        await make_access_code(
            db_session, used=True, used_at=now - timedelta(seconds=90)
        )

        result = await jobs.purge_redeemed_records()

        assert result["emails_processed"] == 1
        assert result["applications_deleted"] == 1
        assert result["access_codes_deleted"] == 1
        assert result["total_errors"] == 0
        assert await repository.get_by_email(db_session, "ada@example.com") is None

    @pytest.mark.asyncio
    async def test_recent_redemption_waits(self, db_session, job_sessions):
        await make_application(db_session, status=ApplicationStatus.APPROVED)
        await make_access_code(db_session, used=True, used_at=datetime.now(UTC))

        result = await jobs.purge_redeemed_records()

        assert result["emails_processed"] == 0
        assert await repository.get_by_email(db_session, "ada@example.com") is not None

    @pytest.mark.asyncio
    async def test_unused_codes_are_left_alone(self, db_session, job_sessions):
        await make_application(db_session, status=ApplicationStatus.APPROVED)
        await make_access_code(db_session)

        result = await jobs.purge_redeemed_records()

        assert result["emails_processed"] == 0
        assert await repository.access_code_exists(db_session, "ABCD2345")

    @pytest.mark.asyncio
    async def test_missing_application_is_not_an_error(self, db_session, job_sessions):
        await make_access_code(
            db_session, used=True, used_at=datetime.now(UTC) - timedelta(minutes=5)
        )

        result = await jobs.purge_redeemed_records()

        assert result["applications_deleted"] == 0
        assert result["access_codes_deleted"] == 1
        assert result["total_errors"] == 0


class TestRegisterAdmissionJobs:
    def test_registers_both_jobs(self, clean_registry):
        jobs.register_admission_jobs()

        job_ids = {job["job_id"] for job in scheduler.list_registered_jobs()}
        assert job_ids == {jobs.JOB_ID_RETENTION_SWEEP, jobs.JOB_ID_PURGE_REDEEMED}

    @pytest.mark.asyncio
    async def test_manual_trigger_returns_sweep_summary(self, clean_registry, job_sessions):
        jobs.register_admission_jobs()

        result = await scheduler.trigger_job_manually(jobs.JOB_ID_RETENTION_SWEEP)

        assert result["status"] == "success"
        assert result["result"]["status"] == "success"

    @pytest.mark.asyncio
    async def test_manual_trigger_of_unknown_job(self, clean_registry):
        with pytest.raises(ValueError):
            await scheduler.trigger_job_manually("no_such_job")
