"""create admission tables

Revision ID: a7c1e9d2b4f0
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration:
1. Creates the users table (accounts created by redeeming an access code)
2. Creates the application_status enum and pending_applications table
3. Creates the access_codes table minted by approvals

access_codes.application_id has no foreign key: the retention sweep may
delete an application before the codes minted for it.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a7c1e9d2b4f0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create users, pending_applications and access_codes."""
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("constituency", sa.String(length=200), nullable=True),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    application_status_enum = postgresql.ENUM(
        "UNREVIEWED",
        "CONTACTED",
        "APPROVED",
        "REJECTED",
        name="application_status",
        create_type=False,
    )
    application_status_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "pending_applications",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False),
        # Applicant
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("constituency", sa.String(length=200), nullable=True),
        sa.Column("interests", sa.JSON(), nullable=False),
        sa.Column("volunteer", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("newsletter", sa.Boolean(), nullable=False, server_default=sa.false()),
        # Volunteer-only
        sa.Column("social_media_handle", sa.String(length=200), nullable=True),
        sa.Column("is_british_citizen", sa.Boolean(), nullable=True),
        sa.Column("lives_in_uk", sa.Boolean(), nullable=True),
        sa.Column("brief_bio", sa.Text(), nullable=True),
        sa.Column("brief_cv", sa.Text(), nullable=True),
        sa.Column("other_affiliations", sa.Text(), nullable=True),
        sa.Column("interested_in", sa.JSON(), nullable=False),
        sa.Column("can_contribute", sa.JSON(), nullable=False),
        sa.Column("signed_nda", sa.Boolean(), nullable=True),
        sa.Column("gdpr_consent", sa.Boolean(), nullable=True),
        # Review
        sa.Column(
            "status",
            application_status_enum,
            nullable=False,
            server_default="UNREVIEWED",
        ),
        sa.Column("reviewed_by", sa.Uuid(), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_pending_applications_status", "pending_applications", ["status"])
    op.create_index(
        "ix_pending_applications_status_updated_at",
        "pending_applications",
        ["status", "updated_at"],
    )

    op.create_table(
        "access_codes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=16), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("constituency", sa.String(length=200), nullable=True),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("application_id", sa.Uuid(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code"),
    )
    op.create_index("ix_access_codes_email", "access_codes", ["email"])
    op.create_index("ix_access_codes_created_at", "access_codes", ["created_at"])
    op.create_index("ix_access_codes_used_at", "access_codes", ["used_at"])


def downgrade() -> None:
    """Drop the admission tables and the status enum."""
    op.drop_index("ix_access_codes_used_at", table_name="access_codes")
    op.drop_index("ix_access_codes_created_at", table_name="access_codes")
    op.drop_index("ix_access_codes_email", table_name="access_codes")
    op.drop_table("access_codes")

    op.drop_index("ix_pending_applications_status_updated_at", table_name="pending_applications")
    op.drop_index("ix_pending_applications_status", table_name="pending_applications")
    op.drop_table("pending_applications")

    postgresql.ENUM(name="application_status").drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
