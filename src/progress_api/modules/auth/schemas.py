"""Authentication schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from progress_api.modules.shared import CamelModel


class LoginRequest(BaseModel):
    """Login request schema."""

    email: EmailStr
    password: str


class RegisterRequest(CamelModel):
    """Account creation with an access code."""

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    access_code: str = Field(..., min_length=1, max_length=32)


class UserResponse(CamelModel):
    """User response schema."""

    id: UUID
    email: str
    first_name: str
    last_name: str
    constituency: str | None = None
    role: str
    roles: list[str]
    is_active: bool
    created_at: datetime
    updated_at: datetime


class LoginResponse(CamelModel):
    """Login / registration response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse
