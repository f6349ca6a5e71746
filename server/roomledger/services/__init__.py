"""Service layer package."""

from .booking_service import BookingService
from .inventory_ledger import InventoryLedger
from .inventory_service import InventoryService
from .night_audit import NightAuditRunner
from .state_machine import BookingEvent, BookingEventType, ReservationStateMachine

__all__ = [
    "BookingEvent",
    "BookingEventType",
    "BookingService",
    "InventoryLedger",
    "InventoryService",
    "NightAuditRunner",
    "ReservationStateMachine",
]
