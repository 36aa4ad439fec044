"""
API response models.

Used for OpenAPI documentation of the ingestion endpoint.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class AcceptedResponse(BaseModel):
    """201 Created acknowledgment."""

    status: str = Field(default="ok", description="Always 'ok'")


class SchemaViolation(BaseModel):
    """One field-level schema violation."""

    path: str = Field(description="Field path in wire names, e.g. env.userAgent")
    rule: str = Field(description="Rule violated, e.g. required or type")
    message: str = Field(description="Human-readable description")


class ErrorResponse(BaseModel):
    """
    Standard error response model.
    """

    error: str = Field(description="Error code")
    details: Optional[List[SchemaViolation]] = Field(
        default=None,
        description="Schema violations (invalid_schema only)"
    )
