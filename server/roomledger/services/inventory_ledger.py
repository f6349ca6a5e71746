"""Per room-type, per-date capacity ledger with all-or-nothing range updates."""

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.calendar import StayRange
from ..core.exceptions import CapacityConflictError, CapacityExceededError, InvalidRangeError, LedgerInvariantError
from ..core.observability import metrics_collector
from ..models.inventory import InventoryCell

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class InventoryLedger:
    """
    Availability allocator over inventory cells.

    Every mutating method runs inside the caller's transaction and first
    locks the cells of the whole range (``SELECT ... FOR UPDATE`` in date
    order), then checks every date, then writes. A failed check raises
    before any counter changes, and any later error rolls the caller's
    transaction back, so a range is never partially held.
    """

    def __init__(self, max_horizon_days: int = 365, clock: Callable[[], datetime] = utc_now):
        self.max_horizon_days = max_horizon_days
        self.clock = clock

    def validate_range(self, arrival: date, departure: date) -> StayRange:
        """
        Build a stay range, rejecting malformed or oversized ones.

        Raises:
            InvalidRangeError: If arrival is not before departure or the range
                spans more nights than the configured horizon
        """
        if arrival >= departure:
            raise InvalidRangeError(arrival, departure, "arrival must be before departure")

        stay = StayRange(arrival, departure)
        if stay.night_count > self.max_horizon_days:
            raise InvalidRangeError(
                arrival,
                departure,
                f"range spans {stay.night_count} nights; the maximum is {self.max_horizon_days}"
            )
        return stay

    async def check_availability(self, session: AsyncSession, room_type: str, stay: StayRange) -> dict[date, int]:
        """Return rooms available per night. Dates without a cell have no capacity."""
        stay = self.validate_range(stay.arrival, stay.departure)
        cells = await self._load_range(session, room_type, stay, lock=False)
        return {
            night: max(cells[night].available, 0) if night in cells else 0
            for night in stay.nights()
        }

    async def get_cells(self, session: AsyncSession, room_type: str, stay: StayRange) -> list[InventoryCell]:
        """Return existing cells in the range, in date order."""
        stay = self.validate_range(stay.arrival, stay.departure)
        cells = await self._load_range(session, room_type, stay, lock=False)
        return [cells[night] for night in sorted(cells)]

    async def reserve(self, session: AsyncSession, room_type: str, stay: StayRange, quantity: int = 1) -> None:
        """
        Hold ``quantity`` rooms on every night of the range, or none at all.

        Raises:
            InvalidRangeError: If the range is malformed
            CapacityExceededError: Naming the first night without enough rooms
        """
        stay = self.validate_range(stay.arrival, stay.departure)
        cells = await self._load_range(session, room_type, stay, lock=True)

        for night in stay.nights():
            cell = cells.get(night)
            available = max(cell.available, 0) if cell else 0
            if available < quantity:
                reason = "stop_sell" if cell is not None and cell.stop_sell else "sold_out"
                logger.warning(
                    "Reservation rejected - insufficient capacity",
                    extra={
                        "room_type": room_type,
                        "stay": str(stay),
                        "night": night.isoformat(),
                        "available": available,
                        "requested": quantity,
                        "reason": reason,
                    }
                )
                metrics_collector.record_reservation(room_type, "rejected")
                raise CapacityExceededError(room_type, night, available, quantity, reason)

        now = self.clock()
        for night in stay.nights():
            cells[night].reserved += quantity
            cells[night].updated_at = now

        await session.flush()
        metrics_collector.record_reservation(room_type, "reserved")

        logger.info(
            "Inventory reserved",
            extra={"room_type": room_type, "stay": str(stay), "quantity": quantity}
        )

    async def release(self, session: AsyncSession, room_type: str, stay: StayRange, quantity: int = 1) -> None:
        """
        Return ``quantity`` rooms on every night of the range.

        Raises:
            LedgerInvariantError: If any night holds fewer reservations than
                released; nothing is decremented in that case
        """
        # Existing stays may predate the current horizon, so only ordering is checked
        if stay.arrival >= stay.departure:
            raise InvalidRangeError(stay.arrival, stay.departure, "arrival must be before departure")
        cells = await self._load_range(session, room_type, stay, lock=True)

        for night in stay.nights():
            cell = cells.get(night)
            reserved = cell.reserved if cell else 0
            if reserved < quantity:
                logger.error(
                    "Release would drive reserved count negative",
                    extra={
                        "room_type": room_type,
                        "stay": str(stay),
                        "night": night.isoformat(),
                        "reserved": reserved,
                        "requested": quantity,
                    }
                )
                raise LedgerInvariantError(
                    f"Cannot release {quantity} room(s) of {room_type} on {night.isoformat()}: "
                    f"only {reserved} reserved"
                )

        now = self.clock()
        for night in stay.nights():
            cells[night].reserved -= quantity
            cells[night].updated_at = now

        await session.flush()
        metrics_collector.record_release(room_type)

        logger.info(
            "Inventory released",
            extra={"room_type": room_type, "stay": str(stay), "quantity": quantity}
        )

    async def shrink(self, session: AsyncSession, room_type: str, night: date) -> None:
        """Release a single night (a stay got shorter)."""
        await self.release(session, room_type, StayRange(night, night + timedelta(days=1)))

    async def extend(self, session: AsyncSession, room_type: str, night: date) -> None:
        """Reserve a single night (a stay got longer)."""
        await self.reserve(session, room_type, StayRange(night, night + timedelta(days=1)))

    async def set_capacity(self, session: AsyncSession, room_type: str, stay: StayRange, total: int) -> int:
        """
        Set total capacity for every night, creating missing cells.

        Returns:
            Number of cells created

        Raises:
            CapacityConflictError: If a night already holds more than ``total``
        """
        stay = self.validate_range(stay.arrival, stay.departure)
        cells = await self._load_range(session, room_type, stay, lock=True)

        for night, cell in sorted(cells.items()):
            if total < cell.reserved + cell.blocked:
                raise CapacityConflictError(room_type, night, total, cell.reserved + cell.blocked)

        return await self._write_totals(session, room_type, stay, cells, {night: total for night in stay.nights()})

    async def adjust_capacity(self, session: AsyncSession, room_type: str, stay: StayRange, delta: int) -> int:
        """
        Change total capacity by ``delta`` on every night, creating missing cells.

        Raises:
            CapacityConflictError: If a night would drop below what it holds
        """
        stay = self.validate_range(stay.arrival, stay.departure)
        cells = await self._load_range(session, room_type, stay, lock=True)

        totals = {}
        for night in stay.nights():
            cell = cells.get(night)
            current, held = (cell.total, cell.reserved + cell.blocked) if cell else (0, 0)
            new_total = current + delta
            if new_total < held:
                raise CapacityConflictError(room_type, night, new_total, held)
            totals[night] = new_total

        return await self._write_totals(session, room_type, stay, cells, totals)

    async def block(self, session: AsyncSession, room_type: str, stay: StayRange, count: int) -> None:
        """
        Take ``count`` rooms out of sale on every night (maintenance holds).

        Raises:
            CapacityExceededError: Naming the first night without enough free rooms
        """
        stay = self.validate_range(stay.arrival, stay.departure)
        cells = await self._load_range(session, room_type, stay, lock=True)

        for night in stay.nights():
            cell = cells.get(night)
            free = cell.total - cell.reserved - cell.blocked if cell else 0
            if free < count:
                raise CapacityExceededError(room_type, night, free, count, reason="insufficient_free_rooms")

        now = self.clock()
        for night in stay.nights():
            cells[night].blocked += count
            cells[night].updated_at = now
        await session.flush()

    async def unblock(self, session: AsyncSession, room_type: str, stay: StayRange, count: int) -> None:
        """
        Return ``count`` blocked rooms to sale on every night.

        Raises:
            CapacityConflictError: If a night has fewer blocked rooms than ``count``
        """
        stay = self.validate_range(stay.arrival, stay.departure)
        cells = await self._load_range(session, room_type, stay, lock=True)

        for night in stay.nights():
            cell = cells.get(night)
            blocked = cell.blocked if cell else 0
            if blocked < count:
                raise CapacityConflictError(
                    room_type,
                    night,
                    cell.total if cell else 0,
                    blocked,
                    detail=f"Cannot unblock {count} room(s) of {room_type} on {night.isoformat()}: only {blocked} blocked",
                )

        now = self.clock()
        for night in stay.nights():
            cells[night].blocked -= count
            cells[night].updated_at = now
        await session.flush()

    async def set_stop_sell(self, session: AsyncSession, room_type: str, stay: StayRange, stop_sell: bool) -> int:
        """Toggle stop-sell on existing cells. Returns the number of cells changed."""
        stay = self.validate_range(stay.arrival, stay.departure)
        cells = await self._load_range(session, room_type, stay, lock=True)

        now = self.clock()
        changed = 0
        for cell in cells.values():
            if cell.stop_sell != stop_sell:
                cell.stop_sell = stop_sell
                cell.updated_at = now
                changed += 1
        await session.flush()
        return changed

    async def _write_totals(
        self,
        session: AsyncSession,
        room_type: str,
        stay: StayRange,
        cells: dict[date, InventoryCell],
        totals: dict[date, int],
    ) -> int:
        now = self.clock()
        created = 0
        for night in stay.nights():
            cell = cells.get(night)
            if cell is None:
                session.add(InventoryCell(
                    room_type=room_type,
                    night=night,
                    total=totals[night],
                    reserved=0,
                    blocked=0,
                    stop_sell=False,
                    updated_at=now,
                ))
                created += 1
            else:
                cell.total = totals[night]
                cell.updated_at = now

        await session.flush()
        return created

    async def _load_range(
        self,
        session: AsyncSession,
        room_type: str,
        stay: StayRange,
        lock: bool,
    ) -> dict[date, InventoryCell]:
        """Load the cells of a range, row-locking them in date order when ``lock`` is set."""
        stmt = (
            select(InventoryCell)
            .where(
                InventoryCell.room_type == room_type,
                InventoryCell.night >= stay.arrival,
                InventoryCell.night < stay.departure,
            )
            .order_by(InventoryCell.night)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        return {cell.night: cell for cell in result.scalars()}
