"""
Authentication Service

Login and account creation. Registration is the caller of the access-code
redemption contract: it validates the code, creates the account and
consumes the code in a single transaction.
"""

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from progress_api.core.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
)
from progress_api.modules.admissions.errors import AdmissionsError, UserExistsError
from progress_api.modules.admissions.helpers import normalize_email
from progress_api.modules.admissions.redemption import consume_access_code, validate_access_code
from progress_api.modules.auth.schemas import RegisterRequest
from progress_api.modules.users.models import User
from progress_api.modules.users.repository import UserRepository

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised for failed logins."""

    def __init__(self, message: str, error_code: str, status_code: int):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


@dataclass
class AuthResult:
    user: User
    access_token: str
    refresh_token: str


def issue_tokens(user: User) -> AuthResult:
    """Create access and refresh tokens for a user."""
    additional_claims = {
        "email": user.email,
        "roles": user.roles,
        "role": user.primary_role.value,
        "name": user.full_name,
    }
    return AuthResult(
        user=user,
        access_token=create_access_token(
            subject=str(user.id),
            additional_claims=additional_claims,
        ),
        refresh_token=create_refresh_token(subject=str(user.id)),
    )


async def authenticate(db: AsyncSession, email: str, password: str) -> AuthResult:
    """
    Check credentials and issue tokens.

    Raises:
        AuthError: 401 for unknown email or wrong password, 403 if inactive
    """
    user = await UserRepository.get_by_email(db, normalize_email(email))

    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Login failed: invalid credentials")
        raise AuthError("Invalid email or password.", "INVALID_CREDENTIALS", 401)

    if not user.is_active:
        logger.warning(f"Login attempt for inactive account: {user.id}")
        raise AuthError("Your account has been deactivated.", "ACCOUNT_INACTIVE", 403)

    logger.info(f"User logged in: {user.id} (role: {user.primary_role.value})")
    return issue_tokens(user)


async def register_member(db: AsyncSession, data: RegisterRequest) -> AuthResult:
    """
    Create an account from an approved application's access code.

    Flow:
    1. Reject if an account already exists for the email
    2. Validate the code against the email (read-only)
    3. Create the user with the code's identity and roles
    4. Consume the code
    5. Commit; any failure rolls back the account too

    The approved application and the code are removed shortly afterwards by
    the redeemed-record purge job.

    Raises:
        UserExistsError: If an account exists for the email
        AccessCodeNotFoundError, AccessCodeExpiredError, AccessCodeMismatchError,
        ApprovedApplicationNotFoundError: If the code cannot be redeemed
    """
    email = normalize_email(data.email)

    if await UserRepository.email_exists(db, email):
        logger.info("Registration rejected: account already exists")
        raise UserExistsError()

    identity = await validate_access_code(db, data.access_code, email)

    try:
        user = await UserRepository.create(
            db,
            email=email,
            password_hash=hash_password(data.password),
            first_name=identity.first_name,
            last_name=identity.last_name,
            constituency=identity.constituency,
            roles=identity.roles,
        )
        await consume_access_code(db, data.access_code)
        await db.commit()
    except AdmissionsError:
        await db.rollback()
        raise
    except IntegrityError as e:
        # Concurrent registration for the same email
        await db.rollback()
        raise UserExistsError() from e

    logger.info(f"Registered user {user.id} with roles {user.roles}")
    return issue_tokens(user)
