"""
Row factories for admissions tests.
"""

from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from progress_api.modules.admissions.models import (
    AccessCode,
    ApplicationStatus,
    PendingApplication,
)


async def make_application(
    db: AsyncSession,
    *,
    email: str = "ada@example.com",
    status: ApplicationStatus = ApplicationStatus.UNREVIEWED,
    volunteer: bool = False,
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
) -> PendingApplication:
    """Insert and commit an application row directly."""
    fields = {}
    if created_at is not None:
        fields["created_at"] = created_at
    if updated_at is not None:
        fields["updated_at"] = updated_at

    application = PendingApplication(
        email=email,
        first_name="Ada",
        last_name="Lovelace",
        constituency="Islington North",
        interests=[],
        interested_in=[],
        can_contribute=[],
        volunteer=volunteer,
        newsletter=False,
        status=status,
        **fields,
    )
    db.add(application)
    await db.commit()
    await db.refresh(application)
    return application


async def make_access_code(
    db: AsyncSession,
    *,
    code: str = "ABCD2345",
    email: str = "ada@example.com",
    roles: list[str] | None = None,
    expires_at: datetime | None = None,
    used: bool = False,
    used_at: datetime | None = None,
    created_at: datetime | None = None,
) -> AccessCode:
    """Insert and commit an access code row directly."""
    now = datetime.now(UTC)
    fields = {}
    if created_at is not None:
        fields["created_at"] = created_at

    access_code = AccessCode(
        code=code,
        email=email,
        first_name="Ada",
        last_name="Lovelace",
        constituency="Islington North",
        roles=["MEMBER"] if roles is None else roles,
        expires_at=expires_at or now + timedelta(days=30),
        used=used,
        used_at=used_at,
        **fields,
    )
    db.add(access_code)
    await db.commit()
    await db.refresh(access_code)
    return access_code
