"""
Core infrastructure: settings, database, security, Redis, rate limiting,
scheduling and email.
"""

from progress_api.core.config import get_settings, settings
from progress_api.core.database import Base, async_session_maker, get_db

__all__ = [
    "settings",
    "get_settings",
    "Base",
    "async_session_maker",
    "get_db",
]
