"""Service heartbeat schemas."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

__all__ = ["HealthResponse", "HealthStatus"]


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    # Neither of the two dates before the business date has a completed audit
    AUDIT_BEHIND = "audit_behind"


class HealthResponse(BaseModel):
    """Heartbeat including where the business calendar stands."""

    status: HealthStatus
    timestamp: datetime = Field(..., description="Current server time (ISO 8601)")
    business_date: date = Field(..., description="Hotel business date at the configured cutover")
    last_audited_date: Optional[date] = Field(None, description="Most recent date closed by a completed audit")
    version: str = "1.0.0"
