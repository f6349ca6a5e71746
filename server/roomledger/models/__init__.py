"""Models module exporting all database models."""

from .audit import AuditAction, AuditOutcome, AuditRun, AuditRunStatus
from .booking import (
    INVENTORY_HOLDING_STATES,
    TERMINAL_STATES,
    Booking,
    BookingLog,
    BookingSource,
    BookingState,
)
from .inventory import AdjustmentKind, InventoryAdjustment, InventoryCell

__all__ = [
    # Booking entities
    "Booking",
    "BookingLog",
    "BookingSource",
    "BookingState",
    "TERMINAL_STATES",
    "INVENTORY_HOLDING_STATES",

    # Inventory entities
    "InventoryCell",
    "InventoryAdjustment",
    "AdjustmentKind",

    # Night audit entities
    "AuditRun",
    "AuditOutcome",
    "AuditRunStatus",
    "AuditAction",
]
