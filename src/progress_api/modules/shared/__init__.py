"""
Shared building blocks for module models and schemas.
"""

from progress_api.modules.shared.models import BaseModel, TimestampMixin
from progress_api.modules.shared.schemas import CamelModel

__all__ = ["BaseModel", "TimestampMixin", "CamelModel"]
