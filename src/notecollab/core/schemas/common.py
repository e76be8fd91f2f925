"""
Shared wire schemas - camelCase base model, error envelope
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every wire model: snake_case attributes, camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict using the service's field names."""
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class ErrorResponse(CamelModel):
    """Error body returned by the note service."""

    success: bool = Field(default=False)
    message: Optional[str] = Field(default=None, description="Human-readable error message")
    errors: Optional[dict[str, Any]] = Field(default=None, description="Per-field errors")
    locked_by: Optional[str] = Field(default=None, description="Lock holder on conflicts")
