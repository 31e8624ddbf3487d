"""
Admissions Router

Public endpoints for the membership application flow.
No authentication is required since applicants have no account yet.

Endpoints:
- POST /applications - Submit a membership or volunteer application
- POST /applications/access-codes/validate - Check an access code before registering

Security:
- Per-IP rate limiting on both endpoints (Redis, in-memory fallback)
- Code validation never reveals whether the code or the email was wrong
- Emails are sent after the response via background tasks
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from progress_api.core.database import get_db
from progress_api.core.rate_limit import RateLimit, client_key, enforce_rate_limit
from progress_api.modules.admissions import redemption, service
from progress_api.modules.admissions.errors import AdmissionsError, ApplicationValidationError
from progress_api.modules.admissions.schemas import (
    AccessCodeValidateRequest,
    AccessCodeValidationResponse,
    ApplicationCreate,
    ApplicationSubmitResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_SUBMIT = RateLimit(5, 60 * 60)  # 5 submissions per hour per IP
RATE_LIMIT_VALIDATE = RateLimit(10, 60)  # 10 code checks per minute per IP


def _service_error_response(e: AdmissionsError) -> HTTPException:
    detail: dict = {"error": e.error_code, "message": e.message}
    if isinstance(e, ApplicationValidationError):
        detail["missing_fields"] = e.missing_fields
        detail["invalid_fields"] = e.invalid_fields
    return HTTPException(status_code=e.status_code, detail=detail)


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred. Please try again later.",
        },
    )


@router.post(
    "",
    response_model=ApplicationSubmitResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Membership Application",
    description="""
Submit a membership application, optionally volunteering.

**Required:** firstName, lastName, email. When `volunteer` is true also
socialMediaHandle, isBritishCitizen, livesInUK, briefBio, briefCV,
signedNDA (true) and gdprConsent (true). All missing fields are reported
together in `missing_fields`; a malformed email is reported in
`invalid_fields`.

**Duplicates:** rejected with 409 if an account exists for the email or an
application for it is still awaiting review. A previously reviewed
application is reset and re-enters the review queue.
""",
    responses={
        400: {"description": "Missing or malformed fields"},
        409: {"description": "Account exists or application awaiting review"},
        429: {"description": "Too many submissions"},
    },
)
async def submit_application(
    data: ApplicationCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
) -> ApplicationSubmitResponse:
    """
    Submit a membership application.

    Raises:
        HTTPException 400: If required fields are missing or malformed
        HTTPException 409: If the email is already registered or pending review
    """
    await enforce_rate_limit(client_key(request, "applications:submit"), RATE_LIMIT_SUBMIT)

    try:
        application = await service.submit_application(db, data, background_tasks)
        return ApplicationSubmitResponse(id=application.id, status=application.status)

    except AdmissionsError as e:
        logger.info(f"Application submission rejected: {e.error_code}")
        raise _service_error_response(e) from e
    except Exception as e:
        logger.exception(f"Unexpected error submitting application: {e}")
        raise _internal_error() from e


@router.post(
    "/access-codes/validate",
    response_model=AccessCodeValidationResponse,
    response_model_by_alias=True,
    summary="Validate Access Code",
    description="""
Check that an access code can be used to register with the given email.

This does **not** use up the code; it is consumed when the account is created.
""",
    responses={
        400: {"description": "Code and email do not match"},
        404: {"description": "Unknown code, or no approved application"},
        410: {"description": "Code already used or expired"},
        429: {"description": "Too many attempts"},
    },
)
async def validate_access_code(
    data: AccessCodeValidateRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AccessCodeValidationResponse:
    """
    Validate an access code without consuming it.
    """
    await enforce_rate_limit(client_key(request, "access_codes:validate"), RATE_LIMIT_VALIDATE)

    try:
        return await redemption.validate_access_code(db, data.code, data.email)

    except AdmissionsError as e:
        raise _service_error_response(e) from e
    except Exception as e:
        logger.exception(f"Unexpected error validating access code: {e}")
        raise _internal_error() from e
