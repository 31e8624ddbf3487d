"""
Admissions Service Layer

Business logic for membership applications.
Orchestrates repository operations, access-code minting and email notifications.

This module implements:
1. Application Intake:
   - Report every missing required field at once (volunteer fields only
     when volunteering)
   - Reject emails that already have an account or an unreviewed application
   - Create the application, or reset a previously reviewed one in place
   - Acknowledge the submission by email

2. Review State Machine:
   - One transition routine enforcing the transition table
   - Approval mints an access code in the same transaction
   - approve / reject shortcuts with a narrower precondition

3. Admin Queries:
   - Filtered, paginated list, detail and dashboard counts

Notes:
- Emails are sent as FastAPI background tasks when a BackgroundTasks
  instance is supplied, otherwise awaited inline; failures are logged and
  never fail the request
- The unique email constraint is the final guard against duplicate
  concurrent submissions
- Access codes are never logged
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from fastapi import BackgroundTasks
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from progress_api.core.email import send_application_approved, send_application_received
from progress_api.modules.admissions import repository
from progress_api.modules.admissions.errors import (
    ApplicationNotFoundError,
    ApplicationPendingError,
    ApplicationValidationError,
    InvalidTransitionError,
    UserExistsError,
)
from progress_api.modules.admissions.helpers import (
    build_application_fields,
    find_invalid_fields,
    find_missing_fields,
    generate_access_code,
    role_for_application,
)
from progress_api.modules.admissions.models import (
    AccessCode,
    ApplicationStatus,
    PendingApplication,
)
from progress_api.modules.admissions.schemas import ApplicationCreate
from progress_api.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)

# Constants
ACCESS_CODE_EXPIRY_DAYS = 30
ACCESS_CODE_MAX_ATTEMPTS = 5
MAX_PAGE_SIZE = 100

# Statuses the approve / reject shortcuts accept
DECIDABLE_STATUSES = frozenset({ApplicationStatus.UNREVIEWED, ApplicationStatus.CONTACTED})


@dataclass
class TransitionResult:
    """Outcome of a review transition."""

    application: PendingApplication
    access_code: AccessCode | None = None


# ============================================
# Notifications
# ============================================


async def _send_safely(send: Callable[..., Awaitable[bool]], **kwargs: Any) -> None:
    """Run an email sender, logging instead of raising on failure."""
    try:
        sent = await send(**kwargs)
        if not sent:
            logger.warning(f"{send.__name__} reported a delivery failure")
    except Exception as e:
        logger.error(f"{send.__name__} failed: {e}", exc_info=True)


async def _notify(
    background_tasks: BackgroundTasks | None,
    send: Callable[..., Awaitable[bool]],
    **kwargs: Any,
) -> None:
    if background_tasks is not None:
        background_tasks.add_task(_send_safely, send, **kwargs)
    else:
        await _send_safely(send, **kwargs)


# ============================================
# Application Intake
# ============================================


async def submit_application(
    db: AsyncSession,
    data: ApplicationCreate,
    background_tasks: BackgroundTasks | None = None,
) -> PendingApplication:
    """
    Submit a membership application.

    Flow:
    1. Validate required fields and email format (all problems reported together)
    2. Reject if an account already uses the email
    3. Reject if an UNREVIEWED application exists for the email
    4. Create the application, or reset an already-reviewed one
    5. Commit, then queue the acknowledgement email

    Args:
        db: Database session
        data: Submitted application
        background_tasks: Where to queue the acknowledgement email

    Returns:
        The UNREVIEWED application

    Raises:
        ApplicationValidationError: If required fields are missing or malformed
        UserExistsError: If an account exists for the email
        ApplicationPendingError: If an application is already awaiting review
    """
    missing = find_missing_fields(data)
    invalid = find_invalid_fields(data)
    if missing or invalid:
        logger.info(f"Application rejected, missing: {missing}, invalid: {invalid}")
        raise ApplicationValidationError(missing, invalid)

    fields = build_application_fields(data)
    email = fields["email"]

    if await UserRepository.email_exists(db, email):
        logger.info("Application rejected: account already exists for email")
        raise UserExistsError()

    existing = await repository.get_by_email(db, email)
    if existing is not None and existing.status == ApplicationStatus.UNREVIEWED:
        logger.info(f"Application rejected: {existing.id} is still awaiting review")
        raise ApplicationPendingError()

    try:
        if existing is not None:
            previous_status = existing.status
            application = await repository.reset_for_resubmission(db, existing, fields)
            logger.info(
                f"Application {application.id} resubmitted, reset from {previous_status.value}"
            )
        else:
            application = await repository.create(db, fields)
            logger.info(f"Application created: {application.id} (volunteer={data.volunteer})")

        await db.commit()
    except IntegrityError as e:
        # A concurrent submission for the same email won the insert
        await db.rollback()
        logger.warning(f"Concurrent application insert rejected: {e.orig}")
        raise ApplicationPendingError() from e

    await _notify(
        background_tasks,
        send_application_received,
        to_email=application.email,
        first_name=application.first_name,
    )

    return application


# ============================================
# Review State Machine
# ============================================


async def _mint_access_code(db: AsyncSession, application: PendingApplication) -> AccessCode:
    """
    Create the access code for an approved application (caller commits).

    Earlier unredeemed codes for the same email are deleted first, so an
    email never holds more than one live code.

    Raises:
        IntegrityError: On flush, if a concurrent approval took the same code
    """
    retired = await repository.delete_unused_access_codes_for_email(db, application.email)
    if retired:
        logger.info(f"Retired {retired} earlier access code(s) for application {application.id}")

    for _ in range(ACCESS_CODE_MAX_ATTEMPTS):
        code = generate_access_code()
        if not await repository.access_code_exists(db, code):
            break
    else:
        raise RuntimeError("Could not generate a unique access code")

    role = role_for_application(application.volunteer)

    access_code = await repository.create_access_code(
        db,
        code=code,
        email=application.email,
        first_name=application.first_name,
        last_name=application.last_name,
        constituency=application.constituency,
        roles=[role.value],
        application_id=application.id,
        expires_at=datetime.now(UTC) + timedelta(days=ACCESS_CODE_EXPIRY_DAYS),
    )

    logger.info(f"Access code minted for application {application.id} (role={role.value})")
    return access_code


async def transition_application(
    db: AsyncSession,
    application_id: UUID,
    target_status: ApplicationStatus,
    admin_id: UUID,
    notes: str | None = None,
    background_tasks: BackgroundTasks | None = None,
) -> TransitionResult:
    """
    Move an application to ``target_status``.

    Approval writes the status and mints an access code in one transaction,
    then queues the acceptance email. APPROVED and REJECTED stamp resolved_at.

    Args:
        db: Database session
        application_id: UUID of the application
        target_status: Requested status
        admin_id: Opaque id of the admin making the change
        notes: Review notes (replace stored notes when given)
        background_tasks: Where to queue the acceptance email

    Returns:
        TransitionResult with the updated application and, for approvals,
        the minted access code

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        InvalidTransitionError: If the transition is not allowed from the
            current status (including a concurrent transition winning)
    """
    logger.info(f"Admin {admin_id} moving application {application_id} to {target_status.value}")

    attempt = 0
    while True:
        attempt += 1
        application = await repository.get_by_id(db, application_id)
        if application is None:
            logger.warning(f"Application not found: {application_id}")
            raise ApplicationNotFoundError(application_id)

        try:
            updated, access_code = await _apply_transition(
                db, application, target_status, admin_id, notes
            )
            await db.commit()
            break
        except IntegrityError:
            # Only the access-code insert can collide; redo the whole approval
            await db.rollback()
            if attempt >= ACCESS_CODE_MAX_ATTEMPTS:
                raise
            logger.warning(
                f"Access code collision approving {application_id}, retrying ({attempt})"
            )
        except repository.InvalidStatusTransitionError as e:
            await db.rollback()
            logger.warning(f"Status transition error: {e}")
            raise InvalidTransitionError(e.current_status, e.new_status) from e
        except repository.RecordNotFoundError as e:
            await db.rollback()
            logger.warning(f"Application {application_id} deleted during transition")
            raise ApplicationNotFoundError(application_id) from e
        except Exception:
            await db.rollback()
            raise

    logger.info(f"Application {application_id} is now {updated.status.value}")

    if access_code is not None:
        await _notify(
            background_tasks,
            send_application_approved,
            to_email=access_code.email,
            first_name=access_code.first_name,
            access_code=access_code.code,
            expires_at=access_code.expires_at,
        )

    return TransitionResult(application=updated, access_code=access_code)


async def _apply_transition(
    db: AsyncSession,
    application: PendingApplication,
    target_status: ApplicationStatus,
    admin_id: UUID,
    notes: str | None,
) -> tuple[PendingApplication, AccessCode | None]:
    updated = await repository.transition_status(
        db,
        application,
        target_status,
        reviewed_by=admin_id,
        review_notes=notes,
    )

    access_code = None
    if target_status == ApplicationStatus.APPROVED:
        access_code = await _mint_access_code(db, updated)

    return updated, access_code


async def _decide(
    db: AsyncSession,
    application_id: UUID,
    decision: ApplicationStatus,
    admin_id: UUID,
    notes: str | None,
    background_tasks: BackgroundTasks | None,
) -> TransitionResult:
    application = await repository.get_by_id(db, application_id)
    if application is None:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)

    if application.status not in DECIDABLE_STATUSES:
        logger.warning(
            f"Cannot {decision.value.lower()} application {application_id}: "
            f"status={application.status.value}"
        )
        raise InvalidTransitionError(application.status, decision)

    return await transition_application(
        db,
        application_id,
        decision,
        admin_id,
        notes=notes,
        background_tasks=background_tasks,
    )


async def approve_application(
    db: AsyncSession,
    application_id: UUID,
    admin_id: UUID,
    notes: str | None = None,
    background_tasks: BackgroundTasks | None = None,
) -> TransitionResult:
    """
    Approve an UNREVIEWED or CONTACTED application.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        InvalidTransitionError: If the application is in any other status
    """
    return await _decide(
        db, application_id, ApplicationStatus.APPROVED, admin_id, notes, background_tasks
    )


async def reject_application(
    db: AsyncSession,
    application_id: UUID,
    admin_id: UUID,
    notes: str | None = None,
    background_tasks: BackgroundTasks | None = None,
) -> TransitionResult:
    """
    Reject an UNREVIEWED or CONTACTED application.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
        InvalidTransitionError: If the application is in any other status
    """
    return await _decide(
        db, application_id, ApplicationStatus.REJECTED, admin_id, notes, background_tasks
    )


# ============================================
# Admin Queries
# ============================================


async def admin_get_applications_list(
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
    List applications for the admin dashboard.

    ``limit`` is clamped to 1..MAX_PAGE_SIZE and ``skip`` to >= 0.
    """
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    skip = max(0, skip)

    return await repository.get_applications_for_admin(
        db,
        status=status,
        volunteer=volunteer,
        search=search.strip() if search else None,
        sort_by=sort_by,
        sort_order=sort_order,
        skip=skip,
        limit=limit,
    )


async def admin_get_dashboard_stats(db: AsyncSession) -> dict[str, int]:
    return await repository.get_dashboard_stats(db)


async def admin_get_application_detail(
    db: AsyncSession,
    application_id: UUID,
) -> PendingApplication:
    """
    Get a single application for admin review.

    Raises:
        ApplicationNotFoundError: If the application doesn't exist
    """
    application = await repository.get_by_id(db, application_id)

    if application is None:
        logger.warning(f"Application not found: {application_id}")
        raise ApplicationNotFoundError(application_id)

    return application
