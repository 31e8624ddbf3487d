"""
Users module - User accounts and roles.
"""

from progress_api.modules.users.models import User, UserRole, derive_primary_role
from progress_api.modules.users.repository import UserRepository

__all__ = ["User", "UserRole", "UserRepository", "derive_primary_role"]
