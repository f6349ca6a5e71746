"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.booking import BookingSource, BookingState

__all__ = [
    "Booking",
    "BookingHistoryEntry",
    "BookingHistoryResponse",
    "CancelBookingRequest",
    "ChangeDepartureRequest",
    "CheckInRequest",
    "CheckOutRequest",
    "ConfirmBookingRequest",
    "CreateBookingRequest",
    "GetBookingRequest",
]


class CreateBookingRequest(BaseModel):
    """Request schema for creating a booking."""

    guest_ref: str = Field(..., min_length=1, max_length=128, description="Guest reference")
    room_type: str = Field(..., min_length=1, max_length=64, description="Room type code")
    arrival: date = Field(..., description="Arrival date (ISO 8601)")
    departure: date = Field(..., description="Departure date (ISO 8601)")
    source: BookingSource = Field(BookingSource.DIRECT, description="Booking channel")


class VersionedBookingRequest(BaseModel):
    """Request addressing one booking, optionally at a known version."""

    booking_id: str = Field(..., description="Booking to change")
    expected_version: Optional[int] = Field(
        None, ge=1, description="Version last read; the request fails if the booking changed since"
    )


class ConfirmBookingRequest(VersionedBookingRequest):
    """Request schema for confirming a booking."""

    rate_snapshot: Optional[Dict[str, Any]] = Field(None, description="Rate captured at confirmation")


class CheckInRequest(VersionedBookingRequest):
    """Request schema for checking a guest in."""

    current_date: date = Field(..., description="Current business date")
    folio_ref: Optional[str] = Field(None, max_length=64, description="Folio reference; generated if omitted")


class CheckOutRequest(VersionedBookingRequest):
    """Request schema for checking a guest out."""

    current_date: Optional[date] = Field(None, description="Current business date")


class CancelBookingRequest(VersionedBookingRequest):
    """Request schema for cancelling a booking."""

    current_date: Optional[date] = Field(
        None, description="Current business date; the service business date when omitted"
    )
    reason: Optional[str] = Field(None, max_length=500, description="Cancellation reason")


class ChangeDepartureRequest(VersionedBookingRequest):
    """Request schema for lengthening or shortening a stay."""

    new_departure: date = Field(..., description="New departure date (ISO 8601)")


class GetBookingRequest(BaseModel):
    """Request schema for getting a booking."""

    booking_id: str = Field(..., description="Booking to retrieve")


class Booking(BaseModel):
    """Booking response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique booking ID")
    code: str = Field(..., description="Booking confirmation code")
    guest_ref: str = Field(..., description="Guest reference")
    room_type: str = Field(..., description="Room type code")
    arrival: date = Field(..., description="Arrival date")
    departure: date = Field(..., description="Departure date")
    state: BookingState = Field(..., description="Booking state")
    source: BookingSource = Field(..., description="Booking channel")
    folio_ref: Optional[str] = Field(None, description="Folio reference, set at check-in")
    rate_snapshot: Optional[Dict[str, Any]] = Field(None, description="Rate captured at confirmation")
    cancellation_reason: Optional[str] = Field(None, description="Why the booking was cancelled")
    version: int = Field(..., ge=1, description="Version for optimistic concurrency")
    created_at: datetime = Field(..., description="Booking creation time (ISO 8601)")
    updated_at: datetime = Field(..., description="Last change time (ISO 8601)")


class BookingHistoryEntry(BaseModel):
    """One transition in a booking's history."""

    action: str = Field(..., description="What happened")
    from_state: Optional[BookingState] = Field(None, description="State before")
    to_state: BookingState = Field(..., description="State after")
    business_date: Optional[date] = Field(None, description="Business date the change applied to")
    version: int = Field(..., ge=1, description="Booking version this change produced")
    details: Optional[str] = Field(None, description="Free-text details")
    created_at: datetime = Field(..., description="When it happened (ISO 8601)")


class BookingHistoryResponse(BaseModel):
    """Booking history response schema."""

    booking_id: str = Field(..., description="Booking ID")
    entries: List[BookingHistoryEntry] = Field(..., description="Transitions, oldest first")
