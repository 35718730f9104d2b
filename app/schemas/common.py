"""Shared schema base and generic response bodies."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model whose JSON field names are camelCase (snake_case accepted on input)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str = Field(..., description="Human-readable outcome")


class ErrorResponse(BaseModel):
    """Body of every error response."""

    error: str = Field(..., description="Human-readable error message")
    code: str = Field(..., description="Machine-readable error code (e.g. UNAUTHORIZED)")


class Pagination(CamelModel):
    """Limit applied and number of items returned."""

    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    grain_type: str | None = None
