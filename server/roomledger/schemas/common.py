"""Common Pydantic schemas."""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

__all__ = ["DateRangeRequest", "Problem", "Violation"]


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="JSON path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    code: Optional[str] = Field(None, description="Application-specific error code")
    retryable: Optional[bool] = Field(None, description="Whether the operation can be retried")
    trace_id: Optional[str] = Field(None, description="Trace ID for debugging")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")


class DateRangeRequest(BaseModel):
    """Room type plus a half-open range of nights [start_date, end_date)."""

    room_type: str = Field(..., min_length=1, max_length=64, description="Room type code")
    start_date: date = Field(..., description="First night (ISO 8601 date)")
    end_date: date = Field(..., description="Night after the last one (ISO 8601 date)")

    @model_validator(mode="after")
    def validate_order(self) -> "DateRangeRequest":
        """Reject ranges that do not contain a night."""
        if self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")
        return self
