"""
Admissions Errors

Service-level exceptions for the admission workflow. Each carries a
machine-readable error code and the HTTP status the routers respond with.
"""

from uuid import UUID

from progress_api.modules.admissions.models import ApplicationStatus


class AdmissionsError(Exception):
    """Base exception for admission workflow errors."""

    def __init__(self, message: str, error_code: str, status_code: int = 400):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


# ============================================
# Validation
# ============================================


class ApplicationValidationError(AdmissionsError):
    """Raised when required application fields are missing or malformed."""

    def __init__(self, missing_fields: list[str], invalid_fields: list[str] | None = None):
        self.missing_fields = missing_fields
        self.invalid_fields = invalid_fields or []
        problems = []
        if self.missing_fields:
            problems.append(f"Missing required fields: {', '.join(self.missing_fields)}")
        if self.invalid_fields:
            problems.append(f"Invalid fields: {', '.join(self.invalid_fields)}")
        super().__init__(
            message=". ".join(problems),
            error_code="VALIDATION_ERROR",
            status_code=400,
        )


# ============================================
# Conflicts
# ============================================


class ConflictError(AdmissionsError):
    """Raised when a submission duplicates an account or an active application."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message=message, error_code=error_code, status_code=409)


class UserExistsError(ConflictError):
    def __init__(self):
        super().__init__(
            message="An account with this email already exists.",
            error_code="USER_EXISTS",
        )


class ApplicationPendingError(ConflictError):
    def __init__(self):
        super().__init__(
            message="An application for this email is already awaiting review.",
            error_code="APPLICATION_PENDING",
        )


# ============================================
# Not found
# ============================================


class NotFoundError(AdmissionsError):
    """Raised when a referenced application or code does not exist."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message=message, error_code=error_code, status_code=404)


class ApplicationNotFoundError(NotFoundError):
    def __init__(self, application_id: UUID | str):
        self.application_id = application_id
        super().__init__(
            message=f"Application {application_id} not found.",
            error_code="APPLICATION_NOT_FOUND",
        )


class AccessCodeNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__(
            message="Access code not found.",
            error_code="ACCESS_CODE_NOT_FOUND",
        )


class ApprovedApplicationNotFoundError(NotFoundError):
    def __init__(self):
        super().__init__(
            message="No approved application found for this email.",
            error_code="APPROVED_APPLICATION_NOT_FOUND",
        )


# ============================================
# State machine
# ============================================


class InvalidTransitionError(AdmissionsError):
    """Raised when the requested status change is not allowed from the current status."""

    def __init__(self, current_status: ApplicationStatus, requested_status: ApplicationStatus):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            message=(
                f"Cannot move application from {current_status.value} "
                f"to {requested_status.value}."
            ),
            error_code="INVALID_TRANSITION",
            status_code=409,
        )


# ============================================
# Access codes
# ============================================


class AccessCodeExpiredError(AdmissionsError):
    """
    Raised when a code can no longer be redeemed.

    ``reason`` tells a used code (REASON_USED) apart from one past its
    expiry (REASON_EXPIRED).
    """

    REASON_USED = "used"
    REASON_EXPIRED = "expired"

    def __init__(self, reason: str):
        self.reason = reason
        if reason == self.REASON_USED:
            message = "This access code has already been used."
            error_code = "ACCESS_CODE_USED"
        else:
            message = "This access code has expired."
            error_code = "ACCESS_CODE_EXPIRED"
        super().__init__(message=message, error_code=error_code, status_code=410)


class AccessCodeMismatchError(AdmissionsError):
    """Raised when the code and email do not belong together."""

    def __init__(self):
        # Same message whichever half was wrong
        super().__init__(
            message="Invalid access code or email.",
            error_code="ACCESS_CODE_MISMATCH",
            status_code=400,
        )
