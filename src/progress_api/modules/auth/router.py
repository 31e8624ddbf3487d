"""Authentication router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from progress_api.core.database import get_db
from progress_api.core.rate_limit import RateLimit, client_key, enforce_rate_limit
from progress_api.modules.admissions.errors import AdmissionsError
from progress_api.modules.auth import service
from progress_api.modules.auth.schemas import (
    LoginRequest,
    LoginResponse,
    RegisterRequest,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_LOGIN = RateLimit(10, 60)
RATE_LIMIT_REGISTER = RateLimit(5, 60)


def _to_response(result: service.AuthResult) -> LoginResponse:
    user = result.user
    return LoginResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        token_type="bearer",
        user=UserResponse(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            constituency=user.constituency,
            role=user.primary_role.value,
            roles=user.roles,
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        ),
    )


@router.post("/login", response_model=LoginResponse, response_model_by_alias=True)
async def login(
    credentials: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Authenticate user and return JWT tokens.

    Raises:
        HTTPException 401: Invalid credentials
        HTTPException 403: Account inactive
    """
    await enforce_rate_limit(client_key(request, "auth:login"), RATE_LIMIT_LOGIN)

    try:
        result = await service.authenticate(db, credentials.email, credentials.password)
    except service.AuthError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"error": e.error_code, "message": e.message},
        ) from e

    return _to_response(result)


@router.post(
    "/register",
    response_model=LoginResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def register(
    data: RegisterRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    """
    Create an account with the access code from an approval email.

    Raises:
        HTTPException 409: Account already exists
        HTTPException 400/404/410: Access code cannot be redeemed
    """
    await enforce_rate_limit(client_key(request, "auth:register"), RATE_LIMIT_REGISTER)

    try:
        result = await service.register_member(db, data)
    except AdmissionsError as e:
        logger.info(f"Registration rejected: {e.error_code}")
        raise HTTPException(
            status_code=e.status_code,
            detail={"error": e.error_code, "message": e.message},
        ) from e
    except Exception as e:
        logger.exception(f"Unexpected error during registration: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred. Please try again later.",
            },
        ) from e

    return _to_response(result)
