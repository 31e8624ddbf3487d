"""
Admissions Schemas

Pydantic schemas for request validation and response serialization.
Field names are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from progress_api.modules.admissions.models import ApplicationStatus
from progress_api.modules.shared import CamelModel

# ============================================
# Public Request Schemas
# ============================================


class ApplicationCreate(CamelModel):
    """
    Request body for POST /applications.

    Every field is optional at the schema level; required fields are
    checked by the service so that all missing fields are reported at once.
    Blank strings are treated as missing.
    """

    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=30)
    constituency: str | None = Field(None, max_length=200)
    interests: list[str] = Field(default_factory=list)
    volunteer: bool = False
    newsletter: bool = False

    # Volunteer-only
    social_media_handle: str | None = Field(None, max_length=200)
    is_british_citizen: bool | None = None
    lives_in_uk: bool | None = Field(None, alias="livesInUK")
    brief_bio: str | None = None
    brief_cv: str | None = Field(None, alias="briefCV")
    other_affiliations: str | None = None
    interested_in: list[str] = Field(default_factory=list)
    can_contribute: list[str] = Field(default_factory=list)
    signed_nda: bool | None = Field(None, alias="signedNDA")
    gdpr_consent: bool | None = None

    @model_validator(mode="before")
    @classmethod
    def blank_strings_to_none(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {
                key: (None if isinstance(value, str) and not value.strip() else value)
                for key, value in data.items()
            }
        return data

    @field_validator("interests", "interested_in", "can_contribute", mode="before")
    @classmethod
    def none_to_empty_list(cls, v: Any) -> Any:
        return [] if v is None else v


class AccessCodeValidateRequest(CamelModel):
    """Request body for POST /applications/access-codes/validate."""

    code: str = Field(..., min_length=1, max_length=32)
    email: str = Field(..., min_length=3, max_length=255)


# ============================================
# Public Response Schemas
# ============================================


class ApplicationSubmitResponse(CamelModel):
    """Response after submitting an application."""

    id: UUID
    status: ApplicationStatus
    message: str = "Application received. We will be in touch soon."


class AccessCodeValidationResponse(CamelModel):
    """Identity and role data carried by a valid access code."""

    first_name: str
    last_name: str
    constituency: str | None = None
    role: str
    roles: list[str]


# ============================================
# Admin Request Schemas
# ============================================


class TransitionRequest(CamelModel):
    """Request body for POST /admin/applications/{id}/transition."""

    status: ApplicationStatus = Field(..., description="Target status")
    notes: str | None = Field(None, max_length=2000, description="Review notes")


class ReviewRequest(CamelModel):
    """Request body for the approve / reject shortcuts."""

    notes: str | None = Field(None, max_length=2000)


# ============================================
# Admin Response Schemas
# ============================================


class ApplicationListItem(CamelModel):
    """Application summary for the admin list."""

    id: UUID
    first_name: str
    last_name: str
    email: str
    constituency: str | None = None
    volunteer: bool
    status: ApplicationStatus
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None = None


class ApplicationListResponse(CamelModel):
    """Paginated list of applications."""

    items: list[ApplicationListItem]
    total: int
    skip: int
    limit: int


class ApplicationDetailResponse(ApplicationListItem):
    """Full application for admin review."""

    phone: str | None = None
    interests: list[str] = Field(default_factory=list)
    newsletter: bool
    social_media_handle: str | None = None
    is_british_citizen: bool | None = None
    lives_in_uk: bool | None = Field(None, alias="livesInUK")
    brief_bio: str | None = None
    brief_cv: str | None = Field(None, alias="briefCV")
    other_affiliations: str | None = None
    interested_in: list[str] = Field(default_factory=list)
    can_contribute: list[str] = Field(default_factory=list)
    signed_nda: bool | None = Field(None, alias="signedNDA")
    gdpr_consent: bool | None = None
    reviewed_by: UUID | None = None
    review_notes: str | None = None


class IssuedAccessCode(CamelModel):
    """Access code minted by an approval."""

    code: str
    expires_at: datetime
    roles: list[str]


class TransitionResponse(CamelModel):
    """Result of a review transition."""

    id: UUID
    status: ApplicationStatus
    reviewed_by: UUID | None = None
    review_notes: str | None = None
    resolved_at: datetime | None = None
    access_code: IssuedAccessCode | None = None


class DashboardStats(CamelModel):
    """Counts for the admin dashboard."""

    unreviewed: int
    contacted: int
    approved: int
    rejected: int
    volunteers: int
    submitted_this_week: int
    outstanding_access_codes: int
