"""
Admissions Models

Database models for membership applications and the access codes minted
when an application is approved.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Index,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from progress_api.core.database import Base
from progress_api.modules.shared import BaseModel


class ApplicationStatus(str, enum.Enum):
    """Review status of a membership application."""

    UNREVIEWED = "UNREVIEWED"
    CONTACTED = "CONTACTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PendingApplication(BaseModel):
    """
    Membership or volunteer application awaiting an admin decision.

    One row per email. A resubmission after review overwrites the row in
    place rather than creating a second one.
    """

    __tablename__ = "pending_applications"

    # Stored trimmed and lower-cased
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)

    # Applicant
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    constituency: Mapped[str | None] = mapped_column(String(200), nullable=True)
    interests: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    volunteer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    newsletter: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Volunteer-only (NULL / empty when volunteer is False)
    social_media_handle: Mapped[str | None] = mapped_column(String(200), nullable=True)
    is_british_citizen: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    lives_in_uk: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    brief_bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    brief_cv: Mapped[str | None] = mapped_column(Text, nullable=True)
    other_affiliations: Mapped[str | None] = mapped_column(Text, nullable=True)
    interested_in: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    can_contribute: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    signed_nda: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    gdpr_consent: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # Review
    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus, name="application_status"),
        nullable=False,
        default=ApplicationStatus.UNREVIEWED,
    )
    # Opaque admin id, no FK so admin accounts can be removed independently
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Stamped on APPROVED and REJECTED
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_pending_applications_status", "status"),
        Index("ix_pending_applications_status_updated_at", "status", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<PendingApplication(id={self.id}, status={self.status.value})>"


class AccessCode(Base):
    """
    Single-use, time-limited code minted by an approval.

    Redeemable while unused, unexpired and presented with the email it was
    minted for.
    """

    __tablename__ = "access_codes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)

    # Identity copied from the application at mint time
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    constituency: Mapped[str | None] = mapped_column(String(200), nullable=True)
    # Ordered, primary role first
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # The approval that minted this code; the application may be purged first
    application_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_access_codes_email", "email"),
        Index("ix_access_codes_created_at", "created_at"),
        Index("ix_access_codes_used_at", "used_at"),
    )

    def __repr__(self) -> str:
        return f"<AccessCode(id={self.id}, used={self.used})>"
