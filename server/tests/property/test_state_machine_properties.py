"""Property-based tests for booking lifecycle rules."""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

from hypothesis import given
from hypothesis import strategies as st

from roomledger.core.exceptions import InvalidTransitionError
from roomledger.models.booking import TERMINAL_STATES, Booking, BookingState
from roomledger.services.state_machine import TRANSITIONS, BookingEvent, BookingEventType, ReservationStateMachine

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
ARRIVAL = date(2024, 6, 10)

events = st.builds(
    BookingEvent,
    type=st.sampled_from(list(BookingEventType)),
    business_date=st.one_of(st.none(), st.integers(min_value=-3, max_value=10).map(lambda d: ARRIVAL + timedelta(days=d))),
)


def new_booking(nights: int) -> Booking:
    return Booking(
        id=uuid4(),
        code="PROPTEST",
        guest_ref="guest",
        room_type="DELUXE",
        arrival=ARRIVAL,
        departure=ARRIVAL + timedelta(days=nights),
        state=BookingState.DRAFT.value,
        source="direct",
        created_at=NOW,
        updated_at=NOW,
    )


@given(nights=st.integers(min_value=1, max_value=7), sequence=st.lists(events, max_size=12))
def test_transitions_follow_lifecycle(nights, sequence):
    """Test every applied event follows an allowed edge and rejected events change nothing."""
    machine = ReservationStateMachine()
    booking = new_booking(nights)

    for step, event in enumerate(sequence):
        before = BookingState(booking.state)
        last_updated = booking.updated_at
        at = NOW + timedelta(minutes=step + 1)
        try:
            machine.apply(booking, event, at)
        except InvalidTransitionError:
            assert booking.state == before.value
            assert booking.updated_at == last_updated
            continue

        after = BookingState(booking.state)
        assert TRANSITIONS[(before, event.type)] is after
        assert before not in TERMINAL_STATES
        assert booking.updated_at == at


@given(nights=st.integers(min_value=1, max_value=7), offset=st.integers(min_value=-5, max_value=10))
def test_check_in_only_during_stay(nights, offset):
    """Test check-in succeeds exactly on the nights of the stay."""
    machine = ReservationStateMachine()
    booking = new_booking(nights)
    booking.state = BookingState.CONFIRMED.value
    on = ARRIVAL + timedelta(days=offset)

    allowed = booking.stay.covers(on)
    try:
        machine.target_state(booking, BookingEvent(BookingEventType.CHECK_IN, business_date=on))
    except InvalidTransitionError:
        assert not allowed
    else:
        assert allowed


@given(offset=st.integers(min_value=-5, max_value=10))
def test_no_show_only_after_arrival(offset):
    """Test no-show needs an audit date strictly after arrival."""
    machine = ReservationStateMachine()
    booking = new_booking(3)
    booking.state = BookingState.CONFIRMED.value
    on = ARRIVAL + timedelta(days=offset)

    try:
        machine.target_state(booking, BookingEvent(BookingEventType.MARK_NO_SHOW, business_date=on))
    except InvalidTransitionError:
        assert on <= ARRIVAL
    else:
        assert on > ARRIVAL
