"""
Admissions Admin Router

API endpoints for administrators reviewing membership applications.
All endpoints require a valid access token carrying the ADMIN role.

Endpoints:
- GET /admin/applications - List applications with filters and pagination
- GET /admin/applications/stats - Get dashboard statistics
- GET /admin/applications/{id} - Get application details
- POST /admin/applications/{id}/transition - Move to any allowed status
- POST /admin/applications/{id}/approve - Approve (from UNREVIEWED or CONTACTED)
- POST /admin/applications/{id}/reject - Reject (from UNREVIEWED or CONTACTED)

Security:
- Admin id from the token is recorded as the reviewer
- Rate limiting on action endpoints to prevent abuse
"""

import logging
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from progress_api.core.auth import AdminUser, get_current_admin_user
from progress_api.core.database import get_db
from progress_api.core.rate_limit import RateLimit, enforce_rate_limit
from progress_api.modules.admissions import service
from progress_api.modules.admissions.errors import AdmissionsError, InvalidTransitionError
from progress_api.modules.admissions.models import ApplicationStatus
from progress_api.modules.admissions.schemas import (
    ApplicationDetailResponse,
    ApplicationListItem,
    ApplicationListResponse,
    DashboardStats,
    IssuedAccessCode,
    ReviewRequest,
    TransitionRequest,
    TransitionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================
# Rate Limiting Configuration
# ============================================

RATE_LIMIT_TRANSITION = RateLimit(30, 60)  # 30 transitions per minute
RATE_LIMIT_DECISION = RateLimit(10, 60)  # 10 approvals/rejections per minute


async def _check_admin_rate_limit(admin: AdminUser, action: str, rule: RateLimit) -> None:
    await enforce_rate_limit(f"rate_limit:admin:{action}:{admin.id}", rule)


# ============================================
# Helper Functions
# ============================================


def _handle_service_error(e: AdmissionsError) -> HTTPException:
    """Convert service errors to HTTPExceptions."""
    detail: dict = {"error": e.error_code, "message": e.message}
    if isinstance(e, InvalidTransitionError):
        detail["current_status"] = e.current_status.value
        detail["requested_status"] = e.requested_status.value
    return HTTPException(status_code=e.status_code, detail=detail)


def _internal_error() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred.",
        },
    )


def _to_transition_response(result: service.TransitionResult) -> TransitionResponse:
    application = result.application
    access_code = None
    if result.access_code is not None:
        access_code = IssuedAccessCode(
            code=result.access_code.code,
            expires_at=result.access_code.expires_at,
            roles=result.access_code.roles,
        )
    return TransitionResponse(
        id=application.id,
        status=application.status,
        reviewed_by=application.reviewed_by,
        review_notes=application.review_notes,
        resolved_at=application.resolved_at,
        access_code=access_code,
    )


# ============================================
# Read Endpoints
# ============================================


@router.get(
    "",
    response_model=ApplicationListResponse,
    response_model_by_alias=True,
    summary="List Applications",
)
async def list_applications(
    status_filter: ApplicationStatus | None = Query(None, alias="status"),
    volunteer: bool | None = Query(None),
    search: str | None = Query(None, max_length=100),
    sort_by: Literal["created_at", "updated_at", "last_name"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("asc"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> ApplicationListResponse:
    """
    List applications with filters, search and pagination.
    """
    try:
        applications, total = await service.admin_get_applications_list(
            db,
            status=status_filter,
            volunteer=volunteer,
            search=search,
            sort_by=sort_by,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )

        logger.info(f"Admin {admin.id} listed applications: {len(applications)} of {total}")

        return ApplicationListResponse(
            items=[ApplicationListItem.model_validate(a) for a in applications],
            total=total,
            skip=skip,
            limit=limit,
        )

    except AdmissionsError as e:
        raise _handle_service_error(e) from e
    except Exception as e:
        logger.exception(f"Error listing applications: {e}")
        raise _internal_error() from e


@router.get(
    "/stats",
    response_model=DashboardStats,
    response_model_by_alias=True,
    summary="Get Dashboard Statistics",
)
async def get_stats(
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> DashboardStats:
    """
    Counts per status, volunteers, submissions this week and outstanding codes.
    """
    try:
        stats = await service.admin_get_dashboard_stats(db)
        logger.info(f"Admin {admin.id} fetched dashboard stats")
        return DashboardStats(**stats)

    except Exception as e:
        logger.exception(f"Error getting dashboard stats: {e}")
        raise _internal_error() from e


@router.get(
    "/{application_id}",
    response_model=ApplicationDetailResponse,
    response_model_by_alias=True,
    summary="Get Application Details",
    responses={404: {"description": "Application not found"}},
)
async def get_application_detail(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> ApplicationDetailResponse:
    """
    Get complete details of an application.
    """
    try:
        application = await service.admin_get_application_detail(db, application_id)
        logger.info(f"Admin {admin.id} viewed application {application_id}")
        return ApplicationDetailResponse.model_validate(application)

    except AdmissionsError as e:
        raise _handle_service_error(e) from e
    except Exception as e:
        logger.exception(f"Error getting application {application_id}: {e}")
        raise _internal_error() from e


# ============================================
# Review Endpoints
# ============================================


@router.post(
    "/{application_id}/transition",
    response_model=TransitionResponse,
    response_model_by_alias=True,
    summary="Change Application Status",
    description="""
Move an application to any status allowed from its current one:

| from | to |
| --- | --- |
| UNREVIEWED | CONTACTED, APPROVED, REJECTED |
| CONTACTED | APPROVED, REJECTED, UNREVIEWED |
| APPROVED | (none) |
| REJECTED | UNREVIEWED, CONTACTED |

Approving mints a single-use access code valid for 30 days and emails it to
the applicant. The code is included in the response.
""",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Transition not allowed from the current status"},
    },
)
async def transition_application(
    application_id: UUID,
    body: TransitionRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> TransitionResponse:
    """
    Move an application to a new status.
    """
    await _check_admin_rate_limit(admin, "transition", RATE_LIMIT_TRANSITION)

    try:
        result = await service.transition_application(
            db,
            application_id,
            body.status,
            admin.id,
            notes=body.notes,
            background_tasks=background_tasks,
        )
        return _to_transition_response(result)

    except AdmissionsError as e:
        raise _handle_service_error(e) from e
    except Exception as e:
        logger.exception(f"Error transitioning application {application_id}: {e}")
        raise _internal_error() from e


@router.post(
    "/{application_id}/approve",
    response_model=TransitionResponse,
    response_model_by_alias=True,
    summary="Approve Application",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application is not UNREVIEWED or CONTACTED"},
    },
)
async def approve_application(
    application_id: UUID,
    background_tasks: BackgroundTasks,
    body: ReviewRequest | None = None,
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> TransitionResponse:
    """
    Approve an application and mint its access code.
    """
    await _check_admin_rate_limit(admin, "approve", RATE_LIMIT_DECISION)

    try:
        result = await service.approve_application(
            db,
            application_id,
            admin.id,
            notes=body.notes if body else None,
            background_tasks=background_tasks,
        )
        return _to_transition_response(result)

    except AdmissionsError as e:
        raise _handle_service_error(e) from e
    except Exception as e:
        logger.exception(f"Error approving application {application_id}: {e}")
        raise _internal_error() from e


@router.post(
    "/{application_id}/reject",
    response_model=TransitionResponse,
    response_model_by_alias=True,
    summary="Reject Application",
    responses={
        404: {"description": "Application not found"},
        409: {"description": "Application is not UNREVIEWED or CONTACTED"},
    },
)
async def reject_application(
    application_id: UUID,
    background_tasks: BackgroundTasks,
    body: ReviewRequest | None = None,
    db: AsyncSession = Depends(get_db),
    admin: AdminUser = Depends(get_current_admin_user),
) -> TransitionResponse:
    """
    Reject an application.
    """
    await _check_admin_rate_limit(admin, "reject", RATE_LIMIT_DECISION)

    try:
        result = await service.reject_application(
            db,
            application_id,
            admin.id,
            notes=body.notes if body else None,
            background_tasks=background_tasks,
        )
        return _to_transition_response(result)

    except AdmissionsError as e:
        raise _handle_service_error(e) from e
    except Exception as e:
        logger.exception(f"Error rejecting application {application_id}: {e}")
        raise _internal_error() from e
