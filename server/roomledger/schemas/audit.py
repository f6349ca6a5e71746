"""Night audit Pydantic schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ..models.audit import AuditAction, AuditRunStatus

__all__ = [
    "AuditOutcome",
    "AuditRun",
    "AuditRunList",
    "GetAuditRunRequest",
    "LastAuditedDate",
    "ListAuditRunsRequest",
    "RunAuditRequest",
]


class RunAuditRequest(BaseModel):
    """Request schema for running the night audit."""

    target_date: Optional[date] = Field(
        None, description="Business date to close; defaults to the last closed business date"
    )


class GetAuditRunRequest(BaseModel):
    """Request schema for getting an audit run."""

    target_date: date = Field(..., description="Audited business date")


class ListAuditRunsRequest(BaseModel):
    """Request schema for listing recent audit runs."""

    limit: int = Field(30, ge=1, le=365, description="Maximum runs to return")


class AuditOutcome(BaseModel):
    """What the audit did to one booking."""

    booking_id: str = Field(..., description="Booking ID")
    action: AuditAction = Field(..., description="Action taken")
    succeeded: bool = Field(..., description="Whether the action succeeded")
    error: Optional[str] = Field(None, description="Error detail when it failed")


class AuditRun(BaseModel):
    """Audit run response schema."""

    id: str = Field(..., description="Unique run ID")
    target_date: date = Field(..., description="Audited business date")
    status: AuditRunStatus = Field(..., description="Run status")
    started_at: datetime = Field(..., description="Start time (ISO 8601)")
    completed_at: Optional[datetime] = Field(None, description="Completion time (ISO 8601)")
    processed_count: int = Field(..., ge=0, description="Bookings processed")
    succeeded_count: int = Field(..., ge=0, description="Bookings processed successfully")
    failed_count: int = Field(..., ge=0, description="Bookings that failed")
    total_rooms: int = Field(..., ge=0, description="Rooms in inventory for the date")
    occupied_rooms: int = Field(..., ge=0, description="Checked-in rooms for the date")
    blocked_rooms: int = Field(..., ge=0, description="Rooms blocked for the date")
    occupancy_rate: float = Field(..., ge=0, description="Occupied rooms as a percentage of total")
    arrivals: int = Field(..., ge=0, description="Guests who arrived on the date")
    departures: int = Field(..., ge=0, description="Guests who left on the date")
    no_shows: int = Field(..., ge=0, description="Bookings marked as no-show")
    checkouts: int = Field(..., ge=0, description="Bookings checked out by the audit")
    error: Optional[str] = Field(None, description="Run-level error")
    outcomes: List[AuditOutcome] = Field(default_factory=list, description="Per-booking outcomes")


class AuditRunList(BaseModel):
    """Recent audit runs."""

    runs: List[AuditRun] = Field(..., description="Runs, newest business date first")


class LastAuditedDate(BaseModel):
    """Last completed business date."""

    last_audited_date: Optional[date] = Field(None, description="Latest business date with a completed audit")
