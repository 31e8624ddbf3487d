"""Authentication module."""

from progress_api.modules.auth.router import router
from progress_api.modules.auth.schemas import LoginRequest, LoginResponse, RegisterRequest

__all__ = ["router", "LoginRequest", "LoginResponse", "RegisterRequest"]
