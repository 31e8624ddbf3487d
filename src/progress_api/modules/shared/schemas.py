"""
Shared Pydantic base schemas.

The mobile client speaks camelCase JSON; models accept either the camelCase
alias or the Python field name and serialize with aliases.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
