"""
Base API Schemas
================

Response bodies are camelCase on the wire (`linkUrl`, `isRead`, ...);
requests accept either camelCase or snake_case field names.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class APIModel(BaseModel):
    """Base for every request/response DTO exposed over HTTP."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
