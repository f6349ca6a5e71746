"""Booking lifecycle rules: which events move a booking to which state."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from ..core.exceptions import InvalidTransitionError
from ..models.booking import INVENTORY_HOLDING_STATES, Booking, BookingState


class BookingEventType(str, Enum):
    """Triggers that may change a booking's state."""
    CONFIRM = "CONFIRM"
    CHECK_IN = "CHECK_IN"
    CHECK_OUT = "CHECK_OUT"
    CANCEL = "CANCEL"
    MARK_NO_SHOW = "MARK_NO_SHOW"


@dataclass(frozen=True)
class BookingEvent:
    """A requested transition plus the data it carries."""

    type: BookingEventType
    business_date: Optional[date] = None
    folio_ref: Optional[str] = None
    rate_snapshot: Optional[dict[str, Any]] = None
    reason: Optional[str] = None


TRANSITIONS: dict[tuple[BookingState, BookingEventType], BookingState] = {
    (BookingState.DRAFT, BookingEventType.CONFIRM): BookingState.CONFIRMED,
    (BookingState.DRAFT, BookingEventType.CANCEL): BookingState.CANCELLED,
    (BookingState.CONFIRMED, BookingEventType.CHECK_IN): BookingState.CHECKED_IN,
    (BookingState.CONFIRMED, BookingEventType.CANCEL): BookingState.CANCELLED,
    (BookingState.CONFIRMED, BookingEventType.MARK_NO_SHOW): BookingState.NO_SHOW,
    (BookingState.CHECKED_IN, BookingEventType.CHECK_OUT): BookingState.CHECKED_OUT,
}

# Requested target per event, used to name the target when no transition exists
EVENT_TARGETS: dict[BookingEventType, BookingState] = {
    BookingEventType.CONFIRM: BookingState.CONFIRMED,
    BookingEventType.CHECK_IN: BookingState.CHECKED_IN,
    BookingEventType.CHECK_OUT: BookingState.CHECKED_OUT,
    BookingEventType.CANCEL: BookingState.CANCELLED,
    BookingEventType.MARK_NO_SHOW: BookingState.NO_SHOW,
}


class ReservationStateMachine:
    """
    Validates and applies booking transitions.

    The machine never touches inventory. Callers release rooms (when
    ``releases_inventory`` says so) before calling ``apply`` inside the same
    transaction.
    """

    def target_state(self, booking: Booking, event: BookingEvent) -> BookingState:
        """
        Return the state ``event`` would move ``booking`` to.

        Raises:
            InvalidTransitionError: If the transition is not allowed; the
                booking is not modified
        """
        current = BookingState(booking.state)
        requested = EVENT_TARGETS[event.type]
        target = TRANSITIONS.get((current, event.type))

        if target is None:
            raise InvalidTransitionError(str(booking.id), current.value, requested.value)

        reason = self._guard(booking, current, event)
        if reason:
            raise InvalidTransitionError(str(booking.id), current.value, requested.value, reason)

        return target

    def releases_inventory(self, booking: Booking, target: BookingState) -> bool:
        """Whether moving to ``target`` gives the booking's nights back to inventory."""
        return (
            target in (BookingState.CANCELLED, BookingState.NO_SHOW)
            and BookingState(booking.state) in INVENTORY_HOLDING_STATES
        )

    def apply(self, booking: Booking, event: BookingEvent, at: datetime) -> BookingState:
        """
        Move ``booking`` to the state ``event`` leads to and stamp it.

        Returns:
            The previous state

        Raises:
            InvalidTransitionError: If the transition is not allowed
        """
        target = self.target_state(booking, event)
        previous = BookingState(booking.state)

        booking.state = target.value
        booking.updated_at = at

        if target is BookingState.CONFIRMED:
            booking.confirmed_at = at
            if event.rate_snapshot is not None:
                booking.rate_snapshot = dict(event.rate_snapshot)
        elif target is BookingState.CHECKED_IN:
            booking.checked_in_at = at
            booking.folio_ref = event.folio_ref
        elif target is BookingState.CHECKED_OUT:
            booking.checked_out_at = at
        elif target is BookingState.CANCELLED:
            booking.cancelled_at = at
            booking.cancellation_reason = event.reason

        return previous

    def _guard(self, booking: Booking, current: BookingState, event: BookingEvent) -> Optional[str]:
        """Return why an otherwise valid transition is not allowed right now."""
        on = event.business_date

        if event.type is BookingEventType.CHECK_IN:
            if on is None:
                return "check-in requires the current business date"
            if on < booking.arrival:
                return f"check-in on {on.isoformat()} is before arrival {booking.arrival.isoformat()}"
            if on >= booking.departure:
                return f"check-in on {on.isoformat()} is not before departure {booking.departure.isoformat()}"

        elif event.type is BookingEventType.CANCEL:
            if current is BookingState.CONFIRMED and on is None:
                return "cancelling a confirmed booking requires the current business date"
            if current is BookingState.CONFIRMED and on >= booking.departure:
                return f"cancellation on {on.isoformat()} is not before departure {booking.departure.isoformat()}"

        elif event.type is BookingEventType.MARK_NO_SHOW:
            if on is None or on <= booking.arrival:
                return "no-show requires an audit date strictly after arrival"

        return None
