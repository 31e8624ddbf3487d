"""
User Models

Database models for user accounts and roles.
"""

from enum import Enum

from sqlalchemy import JSON, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from progress_api.modules.shared import BaseModel


class UserRole(str, Enum):
    """User roles in the system."""

    ADMIN = "ADMIN"
    WRITER = "WRITER"
    EVENT_MANAGER = "EVENT_MANAGER"
    VOLUNTEER = "VOLUNTEER"
    MEMBER = "MEMBER"
    ONBOARDING = "ONBOARDING"


# Highest precedence first
ROLE_PRECEDENCE: tuple[UserRole, ...] = (
    UserRole.ADMIN,
    UserRole.WRITER,
    UserRole.EVENT_MANAGER,
    UserRole.VOLUNTEER,
    UserRole.MEMBER,
    UserRole.ONBOARDING,
)


def derive_primary_role(roles: list[str] | None) -> UserRole:
    """
    Pick the highest-precedence role from a role list.

    Unknown role names are ignored. An empty list yields MEMBER.
    """
    held = set()
    for role in roles or []:
        try:
            held.add(UserRole(role))
        except ValueError:
            continue

    for role in ROLE_PRECEDENCE:
        if role in held:
            return role
    return UserRole.MEMBER


def order_roles(roles: list[str] | None) -> list[str]:
    """Deduplicate and sort roles by precedence (primary role first)."""
    primary_order = {role.value: index for index, role in enumerate(ROLE_PRECEDENCE)}
    unique = {r for r in roles or [] if r in primary_order}
    return sorted(unique, key=primary_order.__getitem__)


class User(BaseModel):
    """
    User account.

    Roles are an ordered list (primary role first) rather than a single
    column so an account can hold several capabilities at once.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    constituency: Mapped[str | None] = mapped_column(String(200), nullable=True)

    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, roles={self.roles})>"

    @property
    def primary_role(self) -> UserRole:
        return derive_primary_role(self.roles)

    @property
    def full_name(self) -> str:
        """Return user's full name."""
        return f"{self.first_name} {self.last_name}"
