"""FastAPI dependencies resolving the components built by the application factory."""

from fastapi import Depends, Header, Request

from ..services.booking_service import BookingService
from ..services.inventory_service import InventoryService
from ..services.night_audit import NightAuditRunner
from .database import Database


def get_database(request: Request) -> Database:
    """Database owned by the running application."""
    return request.app.state.database


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


def get_inventory_service(request: Request) -> InventoryService:
    return request.app.state.inventory_service


def get_night_audit_runner(request: Request) -> NightAuditRunner:
    return request.app.state.night_audit_runner


async def get_actor(
    actor: str = Header("system", alias="X-Actor", min_length=1, max_length=255)
) -> str:
    """
    Identify who is making an administrative change.

    Returns:
        str: Value of the ``X-Actor`` header, ``system`` when absent
    """
    return actor


DatabaseDependency = Depends(get_database)
BookingServiceDependency = Depends(get_booking_service)
InventoryServiceDependency = Depends(get_inventory_service)
NightAuditDependency = Depends(get_night_audit_runner)
ActorDependency = Depends(get_actor)
