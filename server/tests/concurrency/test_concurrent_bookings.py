"""Concurrency tests for reservations and the night audit."""

import asyncio
import os
from datetime import date

import pytest
import pytest_asyncio

from roomledger.core.database import Database
from roomledger.core.exceptions import (
    AuditAlreadyRunningError,
    CapacityExceededError,
    ConcurrentModificationError,
    InvalidTransitionError,
    LockTimeoutError,
)
from roomledger.models.audit import AuditRun, AuditRunStatus
from roomledger.models.booking import BookingState
from roomledger.services.booking_service import BookingService
from roomledger.services.inventory_ledger import InventoryLedger
from roomledger.services.inventory_service import InventoryService


@pytest.mark.asyncio
async def test_concurrent_bookings_no_overbooking(booking_service, seeded_inventory):
    """Test concurrent requests for overlapping stays never exceed capacity."""
    stays = [
        (date(2024, 6, 10), date(2024, 6, 13)),
        (date(2024, 6, 11), date(2024, 6, 12)),
        (date(2024, 6, 12), date(2024, 6, 15)),
        (date(2024, 6, 9), date(2024, 6, 11)),
    ] * 5

    async def attempt(index, arrival, departure):
        try:
            return await booking_service.create_booking(f"guest_{index}", "DELUXE", arrival, departure)
        except CapacityExceededError:
            return None

    results = await asyncio.gather(*(attempt(i, a, d) for i, (a, d) in enumerate(stays)))
    created = [booking for booking in results if booking is not None]

    availability = await booking_service.search_availability("DELUXE", date(2024, 6, 9), date(2024, 6, 15))
    for night, available in availability.items():
        held = sum(1 for booking in created if booking.stay.covers(night))
        assert held <= 5
        assert available == 5 - held


@pytest.mark.asyncio
async def test_last_room_goes_to_exactly_one_request(booking_service, seeded_inventory):
    """Test many requests for the last room yield a single booking."""
    async def attempt(index):
        try:
            return await booking_service.create_booking(f"guest_{index}", "STANDARD", date(2024, 6, 20), date(2024, 6, 22))
        except CapacityExceededError:
            return None

    results = await asyncio.gather(*(attempt(i) for i in range(10)))

    assert len([booking for booking in results if booking is not None]) == 1


@pytest.mark.asyncio
async def test_concurrent_cancel_and_confirm(booking_service, seeded_inventory):
    """Test racing transitions on one booking leave a consistent result."""
    booking = await booking_service.create_booking("guest_1", "STANDARD", date(2024, 6, 10), date(2024, 6, 12))

    results = await asyncio.gather(
        booking_service.confirm(booking.id, expected_version=1),
        booking_service.cancel(booking.id, expected_version=1),
        return_exceptions=True,
    )

    successes = [result for result in results if not isinstance(result, Exception)]
    assert len(successes) == 1

    final = await booking_service.get_booking(booking.id)
    availability = await booking_service.search_availability("STANDARD", date(2024, 6, 10), date(2024, 6, 12))
    expected = 1 if final.state == BookingState.CANCELLED.value else 0
    assert set(availability.values()) == {expected}


@pytest.mark.asyncio
async def test_concurrent_audits_single_flight(night_audit_runner, booking_service, database, seeded_inventory):
    """Test two simultaneous audits for one date produce a single completed run."""
    for index in range(3):
        booking = await booking_service.create_booking(f"guest_{index}", "DELUXE", date(2024, 6, 10), date(2024, 6, 12))
        await booking_service.confirm(booking.id)

    results = await asyncio.gather(
        night_audit_runner.run_audit(date(2024, 6, 11)),
        night_audit_runner.run_audit(date(2024, 6, 11)),
        return_exceptions=True,
    )

    runs = [result for result in results if isinstance(result, AuditRun)]
    errors = [result for result in results if isinstance(result, Exception)]
    assert all(isinstance(error, AuditAlreadyRunningError) for error in errors)
    assert len({run.id for run in runs}) == 1
    assert runs[0].status == AuditRunStatus.COMPLETED.value
    assert runs[0].no_shows == 3

    recent = await night_audit_runner.list_recent_runs()
    assert [run.status for run in recent] == [AuditRunStatus.COMPLETED.value]


@pytest.mark.asyncio
async def test_lock_timeout_aborts_unit_of_work():
    """Test a unit of work that cannot get the lock in time fails as retryable."""
    db = Database("sqlite+aiosqlite:///:memory:", lock_timeout_seconds=0.05)
    await db.create_all()
    try:
        release = asyncio.Event()

        async def hold_lock():
            async with db.transaction():
                await release.wait()

        holder = asyncio.create_task(hold_lock())
        await asyncio.sleep(0.01)

        with pytest.raises(LockTimeoutError) as exc_info:
            async with db.transaction():
                pass

        assert exc_info.value.problem_details["retryable"] is True
        release.set()
        await holder
    finally:
        await db.dispose()


# Row locks only interleave on a real PostgreSQL server
POSTGRES_URL = os.environ.get("ROOMLEDGER_TEST_POSTGRES_URL")
requires_postgres = pytest.mark.skipif(POSTGRES_URL is None, reason="ROOMLEDGER_TEST_POSTGRES_URL not set")


@pytest_asyncio.fixture
async def postgres_services(clock):
    db = Database(POSTGRES_URL, lock_timeout_seconds=5.0)
    await db.drop_all()
    await db.create_all()
    ledger = InventoryLedger(clock=clock)
    inventory_service = InventoryService(db, ledger, clock=clock)
    await inventory_service.seed_capacity("STANDARD", date(2024, 6, 1), date(2024, 7, 1), 1, actor="test")

    yield BookingService(db, ledger, clock=clock), inventory_service

    await db.drop_all()
    await db.dispose()


@requires_postgres
@pytest.mark.asyncio
async def test_racing_releases_never_hit_the_ledger_twice(postgres_services):
    """Test concurrent cancels and a no-show of one booking release its nights exactly once."""
    booking_service, inventory_service = postgres_services
    booking = await booking_service.create_booking("guest_1", "STANDARD", date(2024, 6, 1), date(2024, 6, 3))
    await booking_service.confirm(booking.id)

    results = await asyncio.gather(
        *(booking_service.cancel(booking.id, current_date=date(2024, 6, 1)) for _ in range(5)),
        booking_service.mark_no_show(booking.id, date(2024, 6, 2)),
        return_exceptions=True,
    )

    successes = [result for result in results if not isinstance(result, Exception)]
    errors = [result for result in results if isinstance(result, Exception)]
    assert len(successes) == 1
    assert all(isinstance(error, (InvalidTransitionError, ConcurrentModificationError)) for error in errors)

    cells = await inventory_service.get_cells("STANDARD", date(2024, 6, 1), date(2024, 6, 3))
    assert [cell.reserved for cell in cells] == [0, 0]
