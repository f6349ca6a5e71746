"""Booking service: inventory reservation and state transitions as one unit of work."""

import logging
import secrets
import string
from collections.abc import Callable
from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..core.calendar import StayRange, business_date, iter_nights
from ..core.database import Database
from ..core.exceptions import ConcurrentModificationError, InvalidTransitionError, NotFoundError
from ..core.observability import metrics_collector
from ..models.booking import TERMINAL_STATES, Booking, BookingLog, BookingSource, BookingState
from .inventory_ledger import InventoryLedger, utc_now
from .state_machine import BookingEvent, BookingEventType, ReservationStateMachine

logger = logging.getLogger(__name__)


class BookingService:
    """
    The only writer that touches both the inventory ledger and booking state.

    Each public mutation runs in a single transaction: inventory effects are
    sequenced before the state change, and any failure rolls both back.
    """

    def __init__(
        self,
        db: Database,
        ledger: InventoryLedger,
        state_machine: Optional[ReservationStateMachine] = None,
        clock: Callable[[], datetime] = utc_now,
        cutover_hour: int = 3,
    ):
        self.db = db
        self.ledger = ledger
        self.state_machine = state_machine or ReservationStateMachine()
        self.clock = clock
        self.cutover_hour = cutover_hour

    def _generate_booking_code(self, length: int = 8) -> str:
        """Generate a random booking confirmation code."""
        alphabet = string.ascii_uppercase + string.digits
        return ''.join(secrets.choice(alphabet) for _ in range(length))

    async def search_availability(self, room_type: str, arrival: date, departure: date) -> dict[date, int]:
        """
        Return rooms available per night for a room type.

        Raises:
            InvalidRangeError: If the range is malformed or beyond the horizon
        """
        stay = self.ledger.validate_range(arrival, departure)
        async with self.db.transaction() as session:
            return await self.ledger.check_availability(session, room_type, stay)

    async def create_booking(
        self,
        guest_ref: str,
        room_type: str,
        arrival: date,
        departure: date,
        source: BookingSource = BookingSource.DIRECT,
    ) -> Booking:
        """
        Reserve inventory and create a draft booking for it.

        The reservation comes first; if it fails no booking is created.

        Raises:
            InvalidRangeError: If the range is malformed
            CapacityExceededError: If any night is sold out
        """
        stay = self.ledger.validate_range(arrival, departure)

        async with self.db.transaction() as session:
            await self.ledger.reserve(session, room_type, stay)

            now = self.clock()
            booking = Booking(
                id=uuid4(),
                code=await self._unique_code(session),
                guest_ref=guest_ref,
                room_type=room_type,
                arrival=stay.arrival,
                departure=stay.departure,
                state=BookingState.DRAFT.value,
                source=BookingSource(source).value,
                created_at=now,
                updated_at=now,
            )
            session.add(booking)
            await session.flush()

            session.add(BookingLog(
                booking_id=booking.id,
                action="created",
                from_state=None,
                to_state=BookingState.DRAFT.value,
                version=1,
                details=f"Reserved {stay.night_count} night(s) of {room_type}",
                created_at=now,
            ))

        logger.info(
            "Booking created",
            extra={
                "booking_id": str(booking.id),
                "booking_code": booking.code,
                "guest_ref": guest_ref,
                "room_type": room_type,
                "stay": str(stay),
                "source": booking.source,
            }
        )
        metrics_collector.record_transition("NONE", BookingState.DRAFT.value)

        return booking

    async def confirm(
        self,
        booking_id: UUID,
        rate_snapshot: Optional[dict[str, Any]] = None,
        expected_version: Optional[int] = None,
    ) -> Booking:
        """
        Confirm a draft booking, capturing its rate snapshot.

        Raises:
            NotFoundError: If the booking does not exist
            InvalidTransitionError: If the booking is not a draft
            ConcurrentModificationError: If the booking changed since it was read
        """
        event = BookingEvent(BookingEventType.CONFIRM, rate_snapshot=rate_snapshot)
        return await self._transition(booking_id, event, expected_version)

    async def check_in(
        self,
        booking_id: UUID,
        current_date: date,
        folio_ref: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Booking:
        """
        Check a confirmed booking in on ``current_date``.

        A folio reference is generated when none is supplied.

        Raises:
            InvalidTransitionError: If not confirmed or ``current_date`` is outside the stay
        """
        event = BookingEvent(
            BookingEventType.CHECK_IN,
            business_date=current_date,
            folio_ref=folio_ref or f"FOL-{self._generate_booking_code(10)}",
        )
        return await self._transition(booking_id, event, expected_version)

    async def check_out(
        self,
        booking_id: UUID,
        current_date: Optional[date] = None,
        expected_version: Optional[int] = None,
    ) -> Booking:
        """
        Check a guest out. Reserved counters are left as they are.

        Raises:
            InvalidTransitionError: If the booking is not checked in
        """
        event = BookingEvent(BookingEventType.CHECK_OUT, business_date=current_date)
        return await self._transition(booking_id, event, expected_version)

    async def cancel(
        self,
        booking_id: UUID,
        current_date: Optional[date] = None,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Booking:
        """
        Cancel a draft or confirmed booking and release its nights.

        Inventory is released before the state changes; if the release fails
        the booking keeps its state. ``current_date`` defaults to the business
        date of the service clock.

        Raises:
            InvalidTransitionError: If the booking cannot be cancelled, or
                ``current_date`` is on or after departure
        """
        if current_date is None:
            current_date = business_date(self.clock(), self.cutover_hour)
        event = BookingEvent(BookingEventType.CANCEL, business_date=current_date, reason=reason)
        return await self._transition(booking_id, event, expected_version)

    async def mark_no_show(self, booking_id: UUID, business_date: date) -> Booking:
        """Release an unarrived booking's nights and mark it as a no-show."""
        event = BookingEvent(BookingEventType.MARK_NO_SHOW, business_date=business_date)
        return await self._transition(booking_id, event)

    async def change_departure(
        self,
        booking_id: UUID,
        new_departure: date,
        expected_version: Optional[int] = None,
    ) -> Booking:
        """
        Lengthen or shorten a live stay, reserving or releasing the nights in between.

        Raises:
            InvalidTransitionError: If the booking is already terminal
            InvalidRangeError: If the new departure is not after arrival
            CapacityExceededError: If an added night is sold out
        """
        try:
            async with self.db.transaction() as session:
                booking = await self._get_booking_or_raise(session, booking_id, lock=True)
                self._check_version(booking, expected_version)

                current = BookingState(booking.state)
                if current in TERMINAL_STATES:
                    raise InvalidTransitionError(
                        str(booking.id), current.value, current.value,
                        "terminal bookings cannot be modified"
                    )

                new_stay = self.ledger.validate_range(booking.arrival, new_departure)
                old_departure = booking.departure

                if new_departure > old_departure:
                    for night in iter_nights(old_departure, new_departure):
                        await self.ledger.extend(session, booking.room_type, night)
                else:
                    for night in iter_nights(new_departure, old_departure):
                        await self.ledger.shrink(session, booking.room_type, night)

                now = self.clock()
                booking.departure = new_stay.departure
                booking.updated_at = now
                session.add(BookingLog(
                    booking_id=booking.id,
                    action="departure_changed",
                    from_state=current.value,
                    to_state=current.value,
                    version=booking.version + 1,
                    details=f"Departure moved from {old_departure.isoformat()} to {new_departure.isoformat()}",
                    created_at=now,
                ))
        except StaleDataError as e:
            raise ConcurrentModificationError(str(booking_id)) from e

        logger.info(
            "Booking departure changed",
            extra={
                "booking_id": str(booking.id),
                "old_departure": old_departure.isoformat(),
                "new_departure": new_departure.isoformat(),
                "version": booking.version,
            }
        )
        return booking

    async def get_booking(self, booking_id: UUID) -> Booking:
        """
        Get booking by ID.

        Raises:
            NotFoundError: If booking not found
        """
        async with self.db.transaction() as session:
            return await self._get_booking_or_raise(session, booking_id)

    async def get_booking_by_code(self, code: str) -> Booking | None:
        """Get booking by confirmation code."""
        async with self.db.transaction() as session:
            result = await session.execute(select(Booking).where(Booking.code == code))
            return result.scalar_one_or_none()

    async def get_booking_history(self, booking_id: UUID) -> list[BookingLog]:
        """Return the transition history of a booking, oldest first."""
        async with self.db.transaction() as session:
            await self._get_booking_or_raise(session, booking_id)
            result = await session.execute(
                select(BookingLog)
                .where(BookingLog.booking_id == booking_id)
                .order_by(BookingLog.version, BookingLog.created_at)
            )
            return list(result.scalars())

    async def _transition(
        self,
        booking_id: UUID,
        event: BookingEvent,
        expected_version: Optional[int] = None,
    ) -> Booking:
        """Apply one state-machine event, releasing inventory first when it calls for it."""
        try:
            async with self.db.transaction() as session:
                booking = await self._get_booking_or_raise(session, booking_id, lock=True)
                self._check_version(booking, expected_version)

                try:
                    target = self.state_machine.target_state(booking, event)
                except InvalidTransitionError:
                    logger.warning(
                        "Booking transition rejected",
                        extra={
                            "booking_id": str(booking_id),
                            "current_state": booking.state,
                            "event": event.type.value,
                            "business_date": event.business_date.isoformat() if event.business_date else None,
                        }
                    )
                    raise

                if self.state_machine.releases_inventory(booking, target):
                    await self.ledger.release(session, booking.room_type, booking.stay)

                now = self.clock()
                previous = self.state_machine.apply(booking, event, at=now)

                session.add(BookingLog(
                    booking_id=booking.id,
                    action=event.type.value.lower(),
                    from_state=previous.value,
                    to_state=target.value,
                    business_date=event.business_date,
                    version=booking.version + 1,
                    details=event.reason,
                    created_at=now,
                ))
        except StaleDataError as e:
            logger.warning(
                "Booking modified concurrently",
                extra={"booking_id": str(booking_id), "event": event.type.value}
            )
            raise ConcurrentModificationError(str(booking_id)) from e

        logger.info(
            "Booking transition applied",
            extra={
                "booking_id": str(booking.id),
                "booking_code": booking.code,
                "from_state": previous.value,
                "to_state": target.value,
                "business_date": event.business_date.isoformat() if event.business_date else None,
                "version": booking.version,
            }
        )
        metrics_collector.record_transition(previous.value, target.value)

        return booking

    def _check_version(self, booking: Booking, expected_version: Optional[int]) -> None:
        if expected_version is not None and booking.version != expected_version:
            logger.warning(
                "Booking version mismatch",
                extra={
                    "booking_id": str(booking.id),
                    "expected_version": expected_version,
                    "actual_version": booking.version,
                }
            )
            raise ConcurrentModificationError(str(booking.id), expected_version, booking.version)

    def _booking_query(self, booking_id: UUID, lock: bool = False) -> Select:
        query = select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        if lock:
            # Booking row before inventory cells, on every mutating path
            query = query.with_for_update()
        return query

    async def _get_booking_or_raise(self, session: AsyncSession, booking_id: UUID, lock: bool = False) -> Booking:
        result = await session.execute(self._booking_query(booking_id, lock=lock))
        booking = result.scalar_one_or_none()
        if not booking:
            logger.warning("Booking not found", extra={"booking_id": str(booking_id)})
            raise NotFoundError(resource_type="booking", resource_id=str(booking_id))
        return booking

    async def _unique_code(self, session: AsyncSession) -> str:
        code = self._generate_booking_code()
        while (await session.execute(select(Booking.id).where(Booking.code == code))).first():
            code = self._generate_booking_code()
        return code
