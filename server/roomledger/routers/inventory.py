"""Inventory router for availability and capacity administration."""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from ..core.dependencies import ActorDependency, InventoryServiceDependency
from ..schemas.inventory import (
    AdjustInventoryRequest,
    AvailabilityRequest,
    AvailabilityResponse,
    BlockRoomsRequest,
    InventoryAdjustment,
    NightAvailability,
    SeedInventoryRequest,
    StopSellRequest,
)
from ..services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/inventory", tags=["inventory"])


def _convert_adjustment_to_schema(adjustment_model) -> InventoryAdjustment:
    """Convert inventory adjustment model to schema."""
    return InventoryAdjustment(
        id=str(adjustment_model.id),
        room_type=adjustment_model.room_type,
        start_date=adjustment_model.start_date,
        end_date=adjustment_model.end_date,
        kind=adjustment_model.kind,
        delta=adjustment_model.delta,
        reason=adjustment_model.reason,
        actor=adjustment_model.actor,
        created_at=adjustment_model.created_at,
    )


def _adjustment_response(adjustment_model) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content=_convert_adjustment_to_schema(adjustment_model).model_dump(mode="json")
    )


@router.post("/availability", response_model=AvailabilityResponse)
async def search_availability(
    request: AvailabilityRequest,
    inventory_service: InventoryService = InventoryServiceDependency,
) -> JSONResponse:
    """
    Rooms available per night for a stay.

    Nights without seeded inventory report 0. ``bookable`` is the number of
    rooms free on every night of the stay.
    """
    availability = await inventory_service.search_availability(
        request.room_type, request.arrival, request.departure
    )
    nights = [NightAvailability(night=night, available=count) for night, count in sorted(availability.items())]
    response_data = AvailabilityResponse(
        room_type=request.room_type,
        arrival=request.arrival,
        departure=request.departure,
        nights=nights,
        bookable=min(availability.values()),
    )
    return JSONResponse(status_code=200, content=response_data.model_dump(mode="json"))


@router.post("/seed", response_model=InventoryAdjustment)
async def seed_inventory(
    request: SeedInventoryRequest,
    inventory_service: InventoryService = InventoryServiceDependency,
    actor: str = ActorDependency,
) -> JSONResponse:
    """Set total capacity for every night of a range, creating missing nights."""
    adjustment = await inventory_service.seed_capacity(
        request.room_type, request.start_date, request.end_date, request.total, actor, request.reason
    )
    return _adjustment_response(adjustment)


@router.post("/adjust", response_model=InventoryAdjustment)
async def adjust_inventory(
    request: AdjustInventoryRequest,
    inventory_service: InventoryService = InventoryServiceDependency,
    actor: str = ActorDependency,
) -> JSONResponse:
    """
    Adjust capacity by a delta.

    Can increase or decrease capacity, but never below the rooms a night
    already holds for bookings and blocks.
    """
    adjustment = await inventory_service.adjust_capacity(
        request.room_type, request.start_date, request.end_date, request.delta, actor, request.reason
    )
    return _adjustment_response(adjustment)


@router.post("/block", response_model=InventoryAdjustment)
async def block_rooms(
    request: BlockRoomsRequest,
    inventory_service: InventoryService = InventoryServiceDependency,
    actor: str = ActorDependency,
) -> JSONResponse:
    """Take rooms out of sale, e.g. for maintenance."""
    adjustment = await inventory_service.block_rooms(
        request.room_type, request.start_date, request.end_date, request.count, actor, request.reason
    )
    return _adjustment_response(adjustment)


@router.post("/unblock", response_model=InventoryAdjustment)
async def unblock_rooms(
    request: BlockRoomsRequest,
    inventory_service: InventoryService = InventoryServiceDependency,
    actor: str = ActorDependency,
) -> JSONResponse:
    """Return blocked rooms to sale."""
    adjustment = await inventory_service.unblock_rooms(
        request.room_type, request.start_date, request.end_date, request.count, actor, request.reason
    )
    return _adjustment_response(adjustment)


@router.post("/stop-sell", response_model=InventoryAdjustment)
async def set_stop_sell(
    request: StopSellRequest,
    inventory_service: InventoryService = InventoryServiceDependency,
    actor: str = ActorDependency,
) -> JSONResponse:
    """Close a range for sale, or reopen it."""
    adjustment = await inventory_service.set_stop_sell(
        request.room_type, request.start_date, request.end_date, request.stop_sell, actor, request.reason
    )
    return _adjustment_response(adjustment)
