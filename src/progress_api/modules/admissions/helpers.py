"""
Admissions Shared Helpers

Normalisation, validation and code generation used across service.py,
redemption.py and jobs.py.
"""

import secrets
from datetime import UTC, datetime
from typing import Any

from pydantic import EmailStr, TypeAdapter, ValidationError

from progress_api.modules.admissions.schemas import ApplicationCreate
from progress_api.modules.users.models import UserRole

# Uppercase letters and digits without the easily confused 0/O and 1/I
ACCESS_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ACCESS_CODE_LENGTH = 8

# (field, label) in the order they are reported
REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("first_name", "First name"),
    ("last_name", "Last name"),
    ("email", "Email"),
)

VOLUNTEER_REQUIRED_FIELDS: tuple[tuple[str, str], ...] = (
    ("social_media_handle", "Social media handle"),
    ("is_british_citizen", "British citizenship status"),
    ("lives_in_uk", "UK residence status"),
    ("brief_bio", "Brief bio"),
    ("brief_cv", "Brief CV"),
    ("signed_nda", "Signed NDA"),
    ("gdpr_consent", "GDPR consent"),
)

# Must be present and true, not just present
VOLUNTEER_AGREEMENT_FIELDS = frozenset({"signed_nda", "gdpr_consent"})

VOLUNTEER_ONLY_FIELDS: tuple[str, ...] = (
    "social_media_handle",
    "is_british_citizen",
    "lives_in_uk",
    "brief_bio",
    "brief_cv",
    "other_affiliations",
    "signed_nda",
    "gdpr_consent",
)
VOLUNTEER_ONLY_LIST_FIELDS: tuple[str, ...] = ("interested_in", "can_contribute")

_email_adapter = TypeAdapter(EmailStr)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_access_code(code: str) -> str:
    return code.strip().upper()


def generate_access_code(length: int = ACCESS_CODE_LENGTH) -> str:
    """Generate a short, human-enterable access code."""
    return "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(length))


def role_for_application(volunteer: bool) -> UserRole:
    """Role granted by an approval."""
    return UserRole.VOLUNTEER if volunteer else UserRole.MEMBER


def ensure_utc(value: datetime) -> datetime:
    """
    Return ``value`` as an aware UTC datetime.

    Some backends (SQLite) hand back naive datetimes for timezone-aware
    columns; those values are stored in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def find_missing_fields(data: ApplicationCreate) -> list[str]:
    """
    List the labels of every missing required field.

    Volunteer fields are only required when ``data.volunteer`` is true.
    ``False`` is a valid answer for the citizenship and residence questions,
    but the NDA and GDPR consent must be given.
    """
    missing = [label for field, label in REQUIRED_FIELDS if _is_missing(getattr(data, field))]

    if data.volunteer:
        for field, label in VOLUNTEER_REQUIRED_FIELDS:
            value = getattr(data, field)
            if _is_missing(value) or (field in VOLUNTEER_AGREEMENT_FIELDS and value is not True):
                missing.append(label)

    return missing


def is_valid_email(value: str) -> bool:
    """Syntax check only; deliverability is not looked up."""
    try:
        _email_adapter.validate_python(value.strip())
    except ValidationError:
        return False
    return True


def find_invalid_fields(data: ApplicationCreate) -> list[str]:
    """Labels of fields that are present but malformed."""
    invalid = []
    if not _is_missing(data.email) and not is_valid_email(data.email):
        invalid.append("Email")
    return invalid


def build_application_fields(data: ApplicationCreate) -> dict[str, Any]:
    """
    Column values for a PendingApplication built from a submission.

    Volunteer-only fields are cleared when the applicant is not volunteering.
    """
    fields: dict[str, Any] = {
        "email": normalize_email(data.email or ""),
        "first_name": (data.first_name or "").strip(),
        "last_name": (data.last_name or "").strip(),
        "phone": data.phone,
        "constituency": data.constituency,
        "interests": list(data.interests),
        "volunteer": data.volunteer,
        "newsletter": data.newsletter,
    }

    for field in VOLUNTEER_ONLY_FIELDS:
        fields[field] = getattr(data, field) if data.volunteer else None
    for field in VOLUNTEER_ONLY_LIST_FIELDS:
        fields[field] = list(getattr(data, field)) if data.volunteer else []

    return fields
