"""Inventory-related Pydantic schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .common import DateRangeRequest

__all__ = [
    "AdjustInventoryRequest",
    "AvailabilityRequest",
    "AvailabilityResponse",
    "BlockRoomsRequest",
    "InventoryAdjustment",
    "NightAvailability",
    "SeedInventoryRequest",
    "StopSellRequest",
]


class AvailabilityRequest(BaseModel):
    """Request schema for searching availability."""

    room_type: str = Field(..., min_length=1, max_length=64, description="Room type code")
    arrival: date = Field(..., description="Arrival date (ISO 8601)")
    departure: date = Field(..., description="Departure date (ISO 8601)")


class NightAvailability(BaseModel):
    """Rooms available for one night."""

    night: date = Field(..., description="Night (ISO 8601 date)")
    available: int = Field(..., ge=0, description="Rooms available for sale")


class AvailabilityResponse(BaseModel):
    """Availability search response schema."""

    room_type: str = Field(..., description="Room type code")
    arrival: date = Field(..., description="Arrival date")
    departure: date = Field(..., description="Departure date")
    nights: List[NightAvailability] = Field(..., description="Availability per night")
    bookable: int = Field(..., ge=0, description="Rooms bookable for the whole stay")


class SeedInventoryRequest(DateRangeRequest):
    """Request schema for seeding capacity."""

    total: int = Field(..., ge=0, le=10000, description="Total rooms per night")
    reason: Optional[str] = Field(None, max_length=500, description="Reason for the change")


class AdjustInventoryRequest(DateRangeRequest):
    """Request schema for adjusting capacity."""

    delta: int = Field(..., description="Capacity change (positive or negative)")
    reason: str = Field(..., min_length=1, max_length=500, description="Reason for adjustment")


class BlockRoomsRequest(DateRangeRequest):
    """Request schema for blocking or unblocking rooms."""

    count: int = Field(..., ge=1, le=10000, description="Rooms to block or unblock per night")
    reason: Optional[str] = Field(None, max_length=500, description="Reason, e.g. maintenance")


class StopSellRequest(DateRangeRequest):
    """Request schema for closing or reopening a range for sale."""

    stop_sell: bool = Field(..., description="True closes the range, false reopens it")
    reason: Optional[str] = Field(None, max_length=500, description="Reason for the change")


class InventoryAdjustment(BaseModel):
    """Inventory adjustment response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique adjustment ID")
    room_type: str = Field(..., description="Room type code")
    start_date: date = Field(..., description="First night")
    end_date: date = Field(..., description="Night after the last one")
    kind: str = Field(..., description="Kind of change")
    delta: int = Field(..., description="Capacity change or total for seeding")
    reason: Optional[str] = Field(None, description="Reason for adjustment")
    actor: str = Field(..., description="User who made the adjustment")
    created_at: datetime = Field(..., description="Adjustment time (ISO 8601)")
