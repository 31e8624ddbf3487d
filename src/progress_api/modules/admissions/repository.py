"""
Admissions Repository

Database operations for pending applications and access codes.
All operations are async and follow the repository pattern for clean separation
of concerns between data access and business logic.

Design Principles:
- Functions flush but never commit; the service owns the transaction
- Status changes and code redemption are conditional UPDATEs so concurrent
  callers cannot both succeed
- Bulk deletes return the number of rows removed
- Timezone-aware datetime handling (UTC)
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import and_, asc, case, delete, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AccessCode, ApplicationStatus, PendingApplication

# ============================================
# PendingApplication Repository
# ============================================


async def create(db: AsyncSession, fields: dict[str, Any]) -> PendingApplication:
    """Create a new UNREVIEWED application from prepared column values."""
    application = PendingApplication(**fields, status=ApplicationStatus.UNREVIEWED)

    db.add(application)
    await db.flush()
    await db.refresh(application)

    return application


async def get_by_id(db: AsyncSession, id: UUID) -> PendingApplication | None:
    """Get application by ID."""
    return await db.get(PendingApplication, id)


async def get_by_email(db: AsyncSession, email: str) -> PendingApplication | None:
    """Get the application for a normalised email."""
    result = await db.execute(select(PendingApplication).where(PendingApplication.email == email))
    return result.scalar_one_or_none()


async def get_approved_by_email(db: AsyncSession, email: str) -> PendingApplication | None:
    """Get the application for an email only if it is APPROVED."""
    result = await db.execute(
        select(PendingApplication).where(
            PendingApplication.email == email,
            PendingApplication.status == ApplicationStatus.APPROVED,
        )
    )
    return result.scalar_one_or_none()


async def reset_for_resubmission(
    db: AsyncSession,
    application: PendingApplication,
    fields: dict[str, Any],
) -> PendingApplication:
    """
    Overwrite an existing application with a fresh submission.

    The application goes back to UNREVIEWED and every review field is cleared.
    """
    for key, value in fields.items():
        setattr(application, key, value)

    application.status = ApplicationStatus.UNREVIEWED
    application.reviewed_by = None
    application.review_notes = None
    application.resolved_at = None

    await db.flush()
    await db.refresh(application)

    return application


# Valid status transitions. Self-transitions are not allowed.
VALID_STATUS_TRANSITIONS: dict[ApplicationStatus, set[ApplicationStatus]] = {
    ApplicationStatus.UNREVIEWED: {
        ApplicationStatus.CONTACTED,
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
    },
    ApplicationStatus.CONTACTED: {
        ApplicationStatus.APPROVED,
        ApplicationStatus.REJECTED,
        ApplicationStatus.UNREVIEWED,
    },
    # Terminal
    ApplicationStatus.APPROVED: set(),
    ApplicationStatus.REJECTED: {
        ApplicationStatus.UNREVIEWED,
        ApplicationStatus.CONTACTED,
    },
}

# Statuses that stamp resolved_at
RESOLVED_STATUSES = frozenset({ApplicationStatus.APPROVED, ApplicationStatus.REJECTED})


class InvalidStatusTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""

    def __init__(
        self,
        current_status: ApplicationStatus,
        new_status: ApplicationStatus,
    ):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


class RecordNotFoundError(LookupError):
    """Raised when a row disappears between being read and being updated."""


def is_transition_allowed(current: ApplicationStatus, target: ApplicationStatus) -> bool:
    return target in VALID_STATUS_TRANSITIONS.get(current, set())


async def transition_status(
    db: AsyncSession,
    application: PendingApplication,
    new_status: ApplicationStatus,
    *,
    reviewed_by: UUID | None,
    review_notes: str | None = None,
) -> PendingApplication:
    """
    Move an application to ``new_status``.

    The UPDATE is conditional on the status the caller read, so two
    concurrent transitions from the same status cannot both succeed. When the
    row has moved on in the meantime, the error reports the status it
    actually holds.

    Args:
        db: Database session
        application: Application as read by the caller
        new_status: Target status
        reviewed_by: Admin making the change
        review_notes: Replaces the stored notes when given

    Returns:
        The refreshed application

    Raises:
        InvalidStatusTransitionError: If the transition is not allowed
        RecordNotFoundError: If the application was deleted concurrently
    """
    current_status = application.status

    if not is_transition_allowed(current_status, new_status):
        raise InvalidStatusTransitionError(current_status, new_status)

    values: dict[str, Any] = {"status": new_status, "reviewed_by": reviewed_by}
    if review_notes is not None:
        values["review_notes"] = review_notes
    if new_status in RESOLVED_STATUSES:
        values["resolved_at"] = datetime.now(UTC)

    result = await db.execute(
        update(PendingApplication)
        .where(
            PendingApplication.id == application.id,
            PendingApplication.status == current_status,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        actual_status = await db.scalar(
            select(PendingApplication.status).where(PendingApplication.id == application.id)
        )
        if actual_status is None:
            raise RecordNotFoundError(f"Application {application.id} not found")
        raise InvalidStatusTransitionError(actual_status, new_status)

    await db.refresh(application)
    return application


# ============================================
# AccessCode Repository
# ============================================


async def create_access_code(
    db: AsyncSession,
    *,
    code: str,
    email: str,
    first_name: str,
    last_name: str,
    constituency: str | None,
    roles: list[str],
    application_id: UUID | None,
    expires_at: datetime,
) -> AccessCode:
    """Create a new unused access code."""
    access_code = AccessCode(
        code=code,
        email=email,
        first_name=first_name,
        last_name=last_name,
        constituency=constituency,
        roles=roles,
        application_id=application_id,
        expires_at=expires_at,
        used=False,
    )

    db.add(access_code)
    await db.flush()
    await db.refresh(access_code)

    return access_code


async def get_access_code(db: AsyncSession, code: str) -> AccessCode | None:
    """Get an access code by its normalised value."""
    result = await db.execute(select(AccessCode).where(AccessCode.code == code))
    return result.scalar_one_or_none()


async def access_code_exists(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(AccessCode.id).where(AccessCode.code == code))
    return result.first() is not None


async def mark_access_code_used(db: AsyncSession, code: str, used_at: datetime) -> bool:
    """
    Mark a code used if, and only if, it is still unused.

    Returns:
        True if this call consumed the code, False if it was already used
        or does not exist
    """
    result = await db.execute(
        update(AccessCode)
        .where(
            AccessCode.code == code,
            AccessCode.used == False,  # noqa: E712
        )
        .values(used=True, used_at=used_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def delete_unused_access_codes_for_email(db: AsyncSession, email: str) -> int:
    """Delete every code for ``email`` that has not been redeemed."""
    result = await db.execute(
        delete(AccessCode)
        .where(
            AccessCode.email == email,
            AccessCode.used == False,  # noqa: E712
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def get_access_codes_for_email(db: AsyncSession, email: str) -> list[AccessCode]:
    result = await db.execute(
        select(AccessCode).where(AccessCode.email == email).order_by(AccessCode.created_at)
    )
    return list(result.scalars().all())


# ============================================
# Retention
# ============================================


async def delete_access_codes_created_before(db: AsyncSession, cutoff: datetime) -> int:
    """Delete every access code created before ``cutoff``, used or not."""
    result = await db.execute(
        delete(AccessCode)
        .where(AccessCode.created_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def delete_resolved_applications_updated_before(db: AsyncSession, cutoff: datetime) -> int:
    """Delete APPROVED and REJECTED applications last updated before ``cutoff``."""
    result = await db.execute(
        delete(PendingApplication)
        .where(
            PendingApplication.status.in_([ApplicationStatus.APPROVED, ApplicationStatus.REJECTED]),
            PendingApplication.updated_at < cutoff,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def delete_unreviewed_applications_created_before(db: AsyncSession, cutoff: datetime) -> int:
    """Delete UNREVIEWED applications submitted before ``cutoff``."""
    result = await db.execute(
        delete(PendingApplication)
        .where(
            PendingApplication.status == ApplicationStatus.UNREVIEWED,
            PendingApplication.created_at < cutoff,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def get_redeemed_emails(db: AsyncSession, used_before: datetime) -> list[str]:
    """Emails whose access code was consumed before ``used_before``."""
    result = await db.execute(
        select(AccessCode.email)
        .where(
            AccessCode.used == True,  # noqa: E712
            AccessCode.used_at < used_before,
        )
        .distinct()
    )
    return list(result.scalars().all())


async def delete_records_for_email(db: AsyncSession, email: str) -> tuple[int, int]:
    """
    Delete the application and all access codes for an email.

    Returns:
        (applications deleted, access codes deleted); (0, 0) when already gone
    """
    applications = await db.execute(
        delete(PendingApplication)
        .where(PendingApplication.email == email)
        .execution_options(synchronize_session=False)
    )
    codes = await db.execute(
        delete(AccessCode)
        .where(AccessCode.email == email)
        .execution_options(synchronize_session=False)
    )
    return applications.rowcount or 0, codes.rowcount or 0


# ============================================
# Admin Queries
# ============================================


async def get_applications_for_admin(
    db: AsyncSession,
    *,
    status: ApplicationStatus | None = None,
    volunteer: bool | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "asc",
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[PendingApplication], int]:
    """
    Get applications with filters, sorting, and pagination for the admin list.

    Args:
        db: Database session
        status: Filter by status (optional)
        volunteer: Filter volunteers / non-volunteers (optional)
        search: Case-insensitive match on first name, last name or email
        sort_by: created_at, updated_at or last_name. Default: created_at
        sort_order: asc or desc. Default: asc (oldest first)
        skip: Number of records to skip
        limit: Maximum records to return

    Returns:
        Tuple of (list of applications, total count matching filters)
    """
    query = select(PendingApplication)

    if status:
        query = query.where(PendingApplication.status == status)

    if volunteer is not None:
        query = query.where(PendingApplication.volunteer == volunteer)

    if search:
        search_pattern = f"%{search}%"
        query = query.where(
            or_(
                PendingApplication.first_name.ilike(search_pattern),
                PendingApplication.last_name.ilike(search_pattern),
                PendingApplication.email.ilike(search_pattern),
            )
        )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    valid_sort_columns = {"created_at", "updated_at", "last_name"}
    if sort_by not in valid_sort_columns:
        sort_by = "created_at"

    sort_column = getattr(PendingApplication, sort_by)
    if sort_order.lower() == "desc":
        query = query.order_by(desc(sort_column))
    else:
        query = query.order_by(asc(sort_column))

    query = query.offset(skip).limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_dashboard_stats(db: AsyncSession) -> dict[str, int]:
    """
    Aggregated counts for the admin dashboard.

    Returns:
        Dict with per-status counts, volunteers, submitted_this_week and
        outstanding_access_codes (unused and unexpired)
    """
    now = datetime.now(UTC)
    week_ago = now - timedelta(days=7)

    def _count_status(status: ApplicationStatus):
        return func.count(case((PendingApplication.status == status, 1)))

    row = (
        await db.execute(
            select(
                _count_status(ApplicationStatus.UNREVIEWED).label("unreviewed"),
                _count_status(ApplicationStatus.CONTACTED).label("contacted"),
                _count_status(ApplicationStatus.APPROVED).label("approved"),
                _count_status(ApplicationStatus.REJECTED).label("rejected"),
                func.count(case((PendingApplication.volunteer == True, 1))).label(  # noqa: E712
                    "volunteers"
                ),
                func.count(case((PendingApplication.created_at >= week_ago, 1))).label(
                    "submitted_this_week"
                ),
            )
        )
    ).one()

    outstanding = (
        await db.execute(
            select(func.count(AccessCode.id)).where(
                and_(
                    AccessCode.used == False,  # noqa: E712
                    AccessCode.expires_at >= now,
                )
            )
        )
    ).scalar() or 0

    return {
        "unreviewed": row.unreviewed,
        "contacted": row.contacted,
        "approved": row.approved,
        "rejected": row.rejected,
        "volunteers": row.volunteers,
        "submitted_this_week": row.submitted_this_week,
        "outstanding_access_codes": outstanding,
    }
