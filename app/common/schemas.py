"""
Base schemas for the public API.

Bodies travel as camelCase JSON (``clientId``, ``dueDate``); Python code
keeps snake_case attribute names.
"""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Response model read from ORM objects and emitted with camelCase keys"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


class ApiRequest(BaseModel):
    """Request body: camelCase or snake_case keys, anything else is rejected"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True
    )
