"""Inventory service for administrative capacity operations."""

import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.calendar import StayRange
from ..core.database import Database
from ..models.inventory import AdjustmentKind, InventoryAdjustment, InventoryCell
from .inventory_ledger import InventoryLedger, utc_now

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Seeds and adjusts room inventory on behalf of staff and integrations.

    Every change is applied through the ledger and recorded as an
    ``InventoryAdjustment`` in the same transaction.
    """

    def __init__(self, db: Database, ledger: InventoryLedger, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.ledger = ledger
        self.clock = clock

    async def seed_capacity(
        self,
        room_type: str,
        start: date,
        end: date,
        total: int,
        actor: str,
        reason: Optional[str] = None,
    ) -> InventoryAdjustment:
        """
        Set total capacity for every night in [start, end).

        Args:
            room_type: Room type to seed
            start: First night
            end: Night after the last one
            total: Rooms available for sale before holds
            actor: User or system making the change
            reason: Free-text note

        Returns:
            Created adjustment record

        Raises:
            InvalidRangeError: If the range is malformed
            CapacityConflictError: If a night already holds more than ``total``
        """
        stay = self.ledger.validate_range(start, end)
        async with self.db.transaction() as session:
            created = await self.ledger.set_capacity(session, room_type, stay, total)
            adjustment = self._record(session, room_type, stay, AdjustmentKind.SEED, total, actor, reason)

        logger.info(
            "Inventory seeded",
            extra={
                "room_type": room_type,
                "range": str(stay),
                "total": total,
                "cells_created": created,
                "actor": actor,
            }
        )
        return adjustment

    async def adjust_capacity(
        self,
        room_type: str,
        start: date,
        end: date,
        delta: int,
        actor: str,
        reason: Optional[str] = None,
    ) -> InventoryAdjustment:
        """
        Change total capacity by ``delta`` on every night in [start, end).

        Raises:
            CapacityConflictError: If a night would drop below its reserved and blocked rooms
        """
        stay = self.ledger.validate_range(start, end)
        async with self.db.transaction() as session:
            await self.ledger.adjust_capacity(session, room_type, stay, delta)
            adjustment = self._record(session, room_type, stay, AdjustmentKind.ADJUST, delta, actor, reason)

        logger.info(
            "Inventory adjustment completed successfully",
            extra={
                "adjustment_id": str(adjustment.id),
                "room_type": room_type,
                "range": str(stay),
                "delta": delta,
                "reason": reason,
                "actor": actor,
            }
        )
        return adjustment

    async def block_rooms(
        self,
        room_type: str,
        start: date,
        end: date,
        count: int,
        actor: str,
        reason: Optional[str] = None,
    ) -> InventoryAdjustment:
        """
        Hold ``count`` rooms out of sale on every night, all or nothing.

        Raises:
            CapacityExceededError: Naming the first night without enough free rooms
        """
        stay = self.ledger.validate_range(start, end)
        async with self.db.transaction() as session:
            await self.ledger.block(session, room_type, stay, count)
            adjustment = self._record(session, room_type, stay, AdjustmentKind.BLOCK, count, actor, reason)

        logger.info(
            "Rooms blocked",
            extra={"room_type": room_type, "range": str(stay), "count": count, "actor": actor, "reason": reason}
        )
        return adjustment

    async def unblock_rooms(
        self,
        room_type: str,
        start: date,
        end: date,
        count: int,
        actor: str,
        reason: Optional[str] = None,
    ) -> InventoryAdjustment:
        """
        Return ``count`` blocked rooms to sale on every night.

        Raises:
            CapacityConflictError: If a night has fewer blocked rooms than ``count``
        """
        stay = self.ledger.validate_range(start, end)
        async with self.db.transaction() as session:
            await self.ledger.unblock(session, room_type, stay, count)
            adjustment = self._record(session, room_type, stay, AdjustmentKind.UNBLOCK, -count, actor, reason)

        logger.info(
            "Rooms unblocked",
            extra={"room_type": room_type, "range": str(stay), "count": count, "actor": actor}
        )
        return adjustment

    async def set_stop_sell(
        self,
        room_type: str,
        start: date,
        end: date,
        stop_sell: bool,
        actor: str,
        reason: Optional[str] = None,
    ) -> InventoryAdjustment:
        """Close or reopen a range for sale without touching capacity."""
        stay = self.ledger.validate_range(start, end)
        kind = AdjustmentKind.STOP_SELL if stop_sell else AdjustmentKind.RESUME_SELL
        async with self.db.transaction() as session:
            changed = await self.ledger.set_stop_sell(session, room_type, stay, stop_sell)
            adjustment = self._record(session, room_type, stay, kind, 0, actor, reason)

        logger.info(
            "Stop-sell updated",
            extra={
                "room_type": room_type,
                "range": str(stay),
                "stop_sell": stop_sell,
                "cells_changed": changed,
                "actor": actor,
            }
        )
        return adjustment

    async def search_availability(self, room_type: str, start: date, end: date) -> dict[date, int]:
        """Rooms available per night; nights without inventory report 0."""
        stay = self.ledger.validate_range(start, end)
        async with self.db.transaction() as session:
            return await self.ledger.check_availability(session, room_type, stay)

    async def get_cells(self, room_type: str, start: date, end: date) -> list[InventoryCell]:
        """Get the stored cells of a range, ordered by night."""
        stay = self.ledger.validate_range(start, end)
        async with self.db.transaction() as session:
            return await self.ledger.get_cells(session, room_type, stay)

    async def get_adjustments(self, room_type: str, limit: int = 50) -> list[InventoryAdjustment]:
        """Get administrative changes for a room type, newest first."""
        async with self.db.transaction() as session:
            result = await session.execute(
                select(InventoryAdjustment)
                .where(InventoryAdjustment.room_type == room_type)
                .order_by(InventoryAdjustment.created_at.desc())
                .limit(limit)
            )
            return list(result.scalars())

    def _record(
        self,
        session: AsyncSession,
        room_type: str,
        stay: StayRange,
        kind: AdjustmentKind,
        delta: int,
        actor: str,
        reason: Optional[str],
    ) -> InventoryAdjustment:
        adjustment = InventoryAdjustment(
            id=uuid4(),
            room_type=room_type,
            start_date=stay.arrival,
            end_date=stay.departure,
            kind=kind.value,
            delta=delta,
            reason=reason,
            actor=actor,
            created_at=self.clock(),
        )
        session.add(adjustment)
        return adjustment
