"""
Access-Code Redemption

``validate_access_code`` is read-only so a client can check a code before
the user finishes registering. ``consume_access_code`` is the only mutator
and succeeds at most once per code; account creation calls it inside its
own transaction.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from progress_api.modules.admissions import repository
from progress_api.modules.admissions.errors import (
    AccessCodeExpiredError,
    AccessCodeMismatchError,
    AccessCodeNotFoundError,
    AdmissionsError,
    ApprovedApplicationNotFoundError,
)
from progress_api.modules.admissions.helpers import (
    ensure_utc,
    normalize_access_code,
    normalize_email,
    role_for_application,
)
from progress_api.modules.admissions.models import AccessCode
from progress_api.modules.admissions.schemas import AccessCodeValidationResponse

logger = logging.getLogger(__name__)


async def validate_access_code(
    db: AsyncSession,
    code: str,
    email: str,
) -> AccessCodeValidationResponse:
    """
    Check that ``code`` can be redeemed by ``email``.

    Checks, in order: the code exists, it is unused, it has not expired,
    the email matches the one it was minted for, and that email still has
    an APPROVED application.

    Returns:
        Identity and role data for account creation. ``role`` is the first
        entry of ``roles``.

    Raises:
        AccessCodeNotFoundError: Unknown code
        AccessCodeExpiredError: Code already used, or past its expiry
        AccessCodeMismatchError: Code was minted for another email
        ApprovedApplicationNotFoundError: No APPROVED application for the email
    """
    normalized_code = normalize_access_code(code)
    normalized_email = normalize_email(email)

    access_code = await repository.get_access_code(db, normalized_code)
    if access_code is None:
        logger.info("Access code validation failed: unknown code")
        raise AccessCodeNotFoundError()

    if access_code.used:
        logger.info(f"Access code validation failed: code {access_code.id} already used")
        raise AccessCodeExpiredError(AccessCodeExpiredError.REASON_USED)

    if datetime.now(UTC) > ensure_utc(access_code.expires_at):
        logger.info(f"Access code validation failed: code {access_code.id} expired")
        raise AccessCodeExpiredError(AccessCodeExpiredError.REASON_EXPIRED)

    if normalize_email(access_code.email) != normalized_email:
        logger.warning(f"Access code validation failed: email mismatch for code {access_code.id}")
        raise AccessCodeMismatchError()

    application = await repository.get_approved_by_email(db, normalized_email)
    if application is None:
        logger.warning(
            f"Access code validation failed: no approved application for code {access_code.id}"
        )
        raise ApprovedApplicationNotFoundError()

    roles = list(access_code.roles or [])
    if not roles:
        # Codes minted without roles fall back to the application's volunteer flag
        roles = [role_for_application(application.volunteer).value]

    return AccessCodeValidationResponse(
        first_name=access_code.first_name,
        last_name=access_code.last_name,
        constituency=access_code.constituency,
        role=roles[0],
        roles=roles,
    )


async def consume_access_code(db: AsyncSession, code: str) -> AccessCode:
    """
    Mark a code used. Flushes only; the caller commits.

    The update only matches unused codes, so of several concurrent callers
    exactly one succeeds.

    Raises:
        AccessCodeNotFoundError: Unknown code
        AccessCodeExpiredError: Code was already used (reason "used")
    """
    normalized_code = normalize_access_code(code)

    consumed = await repository.mark_access_code_used(db, normalized_code, datetime.now(UTC))
    if not consumed:
        if not await repository.access_code_exists(db, normalized_code):
            raise AccessCodeNotFoundError()
        logger.info("Access code consume rejected: already used")
        raise AccessCodeExpiredError(AccessCodeExpiredError.REASON_USED)

    access_code = await repository.get_access_code(db, normalized_code)
    if access_code is None:
        # Deleted between the update and the read-back
        raise AccessCodeNotFoundError()
    # The identity map may hold the pre-update row
    await db.refresh(access_code)

    logger.info(f"Access code {access_code.id} consumed")
    return access_code


async def redeem_access_code(
    db: AsyncSession,
    code: str,
    email: str,
) -> AccessCodeValidationResponse:
    """
    Validate and consume a code in one transaction.

    Standalone redemption for callers that do not create an account in the
    same request.
    """
    identity = await validate_access_code(db, code, email)

    try:
        await consume_access_code(db, code)
        await db.commit()
    except AdmissionsError:
        await db.rollback()
        raise

    return identity
