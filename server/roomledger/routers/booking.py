"""Booking router for reservation lifecycle operations."""

import logging
from uuid import UUID

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.dependencies import BookingServiceDependency
from ..core.exceptions import NotFoundError
from ..schemas.booking import (
    Booking,
    BookingHistoryEntry,
    BookingHistoryResponse,
    CancelBookingRequest,
    ChangeDepartureRequest,
    CheckInRequest,
    CheckOutRequest,
    ConfirmBookingRequest,
    CreateBookingRequest,
    GetBookingRequest,
)
from ..services.booking_service import BookingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/booking", tags=["booking"])


def _parse_booking_id(booking_id: str) -> UUID:
    """Malformed IDs cannot name an existing booking."""
    try:
        return UUID(booking_id)
    except (ValueError, TypeError):
        raise NotFoundError(resource_type="booking", resource_id=booking_id) from None


def _convert_booking_to_schema(booking_model) -> Booking:
    """Convert booking model to schema."""
    return Booking(
        id=str(booking_model.id),
        code=booking_model.code,
        guest_ref=booking_model.guest_ref,
        room_type=booking_model.room_type,
        arrival=booking_model.arrival,
        departure=booking_model.departure,
        state=booking_model.state,
        source=booking_model.source,
        folio_ref=booking_model.folio_ref,
        rate_snapshot=booking_model.rate_snapshot,
        cancellation_reason=booking_model.cancellation_reason,
        version=booking_model.version,
        created_at=booking_model.created_at,
        updated_at=booking_model.updated_at,
    )


def _booking_response(booking_model, status_code: int = 200) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=_convert_booking_to_schema(booking_model).model_dump(mode="json")
    )


@router.post("/create", response_model=Booking, status_code=201)
async def create_booking(
    request: CreateBookingRequest,
    booking_service: BookingService = BookingServiceDependency,
) -> JSONResponse:
    """
    Reserve inventory and create a draft booking.

    Fails with 409 CAPACITY_EXCEEDED, naming the first sold-out night, when
    any night of the stay is unavailable.
    """
    booking = await booking_service.create_booking(
        guest_ref=request.guest_ref,
        room_type=request.room_type,
        arrival=request.arrival,
        departure=request.departure,
        source=request.source,
    )
    return _booking_response(booking, status_code=201)


@router.post("/confirm", response_model=Booking)
async def confirm_booking(
    request: ConfirmBookingRequest,
    booking_service: BookingService = BookingServiceDependency,
) -> JSONResponse:
    """Confirm a draft booking."""
    booking = await booking_service.confirm(
        _parse_booking_id(request.booking_id),
        rate_snapshot=request.rate_snapshot,
        expected_version=request.expected_version,
    )
    return _booking_response(booking)


@router.post("/check-in", response_model=Booking)
async def check_in(
    request: CheckInRequest,
    booking_service: BookingService = BookingServiceDependency,
) -> JSONResponse:
    """Check a confirmed booking in on or after its arrival date."""
    booking = await booking_service.check_in(
        _parse_booking_id(request.booking_id),
        current_date=request.current_date,
        folio_ref=request.folio_ref,
        expected_version=request.expected_version,
    )
    return _booking_response(booking)


@router.post("/check-out", response_model=Booking)
async def check_out(
    request: CheckOutRequest,
    booking_service: BookingService = BookingServiceDependency,
) -> JSONResponse:
    """Check a guest out."""
    booking = await booking_service.check_out(
        _parse_booking_id(request.booking_id),
        current_date=request.current_date,
        expected_version=request.expected_version,
    )
    return _booking_response(booking)


@router.post("/cancel", response_model=Booking)
async def cancel_booking(
    request: CancelBookingRequest,
    booking_service: BookingService = BookingServiceDependency,
) -> JSONResponse:
    """Cancel a draft or confirmed booking and release its nights."""
    booking = await booking_service.cancel(
        _parse_booking_id(request.booking_id),
        current_date=request.current_date,
        reason=request.reason,
        expected_version=request.expected_version,
    )
    return _booking_response(booking)


@router.post("/change-departure", response_model=Booking)
async def change_departure(
    request: ChangeDepartureRequest,
    booking_service: BookingService = BookingServiceDependency,
) -> JSONResponse:
    """Lengthen or shorten a stay by moving its departure date."""
    booking = await booking_service.change_departure(
        _parse_booking_id(request.booking_id),
        new_departure=request.new_departure,
        expected_version=request.expected_version,
    )
    return _booking_response(booking)


@router.post("/get", response_model=Booking)
async def get_booking(
    request: GetBookingRequest,
    booking_service: BookingService = BookingServiceDependency,
) -> JSONResponse:
    """Get booking details."""
    booking = await booking_service.get_booking(_parse_booking_id(request.booking_id))
    return _booking_response(booking)


@router.post("/history", response_model=BookingHistoryResponse)
async def get_booking_history(
    request: GetBookingRequest,
    booking_service: BookingService = BookingServiceDependency,
) -> JSONResponse:
    """Get the transition history of a booking."""
    entries = await booking_service.get_booking_history(_parse_booking_id(request.booking_id))
    response_data = BookingHistoryResponse(
        booking_id=request.booking_id,
        entries=[
            BookingHistoryEntry(
                action=entry.action,
                from_state=entry.from_state,
                to_state=entry.to_state,
                business_date=entry.business_date,
                version=entry.version,
                details=entry.details,
                created_at=entry.created_at,
            )
            for entry in entries
        ],
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))
