"""
Request Authentication

Bearer-token dependencies for FastAPI routes. Tokens are the access tokens
issued by ``/auth/login`` and ``/auth/register``; their ``roles`` claim is
the user's ordered role list with the primary role first.

    @router.get("/admin/applications")
    async def list_applications(admin: AdminUser = Depends(get_current_admin_user)):
        ...

Failures map to 401 (missing, malformed, expired or non-access token) and
403 (valid token without a required role).
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from progress_api.core.security import decode_token

logger = logging.getLogger(__name__)

ADMIN_ROLE = "ADMIN"

bearer_scheme = HTTPBearer(description="Access token from /auth/login")


@dataclass
class AuthenticatedUser:
    """Identity carried by a verified access token."""

    id: UUID
    email: str
    roles: list[str] = field(default_factory=list)

    @property
    def role(self) -> str | None:
        return self.roles[0] if self.roles else None

    def has_any_role(self, *roles: str) -> bool:
        return any(r in self.roles for r in roles)


# Admin routes only need the id (recorded as reviewer) and roles
AdminUser = AuthenticatedUser


class TokenRejected(Exception):
    def __init__(self, error: str, message: str):
        self.error = error
        self.message = message
        super().__init__(message)


def principal_from_token(token: str) -> AuthenticatedUser:
    """
    Decode an access token into an ``AuthenticatedUser``.

    A legacy single ``role`` claim is read as a one-element role list.

    Raises:
        TokenRejected: Bad signature, expired, wrong token type or bad claims
    """
    payload = decode_token(token)
    if payload is None:
        raise TokenRejected("INVALID_TOKEN", "Invalid or expired authentication token.")

    if payload.get("type", "access") != "access":
        raise TokenRejected("INVALID_TOKEN_TYPE", "This endpoint requires an access token.")

    roles = payload.get("roles")
    if not isinstance(roles, list):
        roles = [payload["role"]] if payload.get("role") else []

    try:
        user_id = UUID(str(payload.get("sub")))
    except ValueError as e:
        raise TokenRejected(
            "INVALID_TOKEN_CLAIMS", "Token contains invalid or missing claims."
        ) from e

    return AuthenticatedUser(
        id=user_id,
        email=payload.get("email", ""),
        roles=[str(r) for r in roles],
    )


def require_roles(*required: str) -> Callable[..., Awaitable[AuthenticatedUser]]:
    """
    Build a dependency admitting users holding at least one of ``required``.
    """

    async def dependency(
        credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    ) -> AuthenticatedUser:
        try:
            user = principal_from_token(credentials.credentials)
        except TokenRejected as e:
            logger.warning(f"Rejected bearer token: {e.error}")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": e.error, "message": e.message},
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        if not user.has_any_role(*required):
            logger.warning(f"User {user.id} with roles {user.roles} denied; needs one of {required}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": "ADMIN_ACCESS_REQUIRED" if ADMIN_ROLE in required else "ROLE_REQUIRED",
                    "message": f"This endpoint requires the {' or '.join(required)} role.",
                },
            )

        return user

    return dependency


get_current_admin_user = require_roles(ADMIN_ROLE)


__all__ = [
    "ADMIN_ROLE",
    "AdminUser",
    "AuthenticatedUser",
    "TokenRejected",
    "get_current_admin_user",
    "principal_from_token",
    "require_roles",
]
