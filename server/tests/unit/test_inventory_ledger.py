"""Unit tests for the inventory ledger."""

from datetime import date

import pytest

from roomledger.core.calendar import StayRange
from roomledger.core.exceptions import (
    CapacityConflictError,
    CapacityExceededError,
    InvalidRangeError,
    LedgerInvariantError,
)
from roomledger.services.inventory_ledger import InventoryLedger


async def cells_by_night(database, ledger, room_type, start, end):
    async with database.transaction() as session:
        cells = await ledger.get_cells(session, room_type, StayRange(start, end))
    return {cell.night: cell for cell in cells}


def test_validate_range_rejects_reversed_dates(ledger):
    """Test arrival must come before departure."""
    with pytest.raises(InvalidRangeError):
        ledger.validate_range(date(2024, 6, 10), date(2024, 6, 10))

    with pytest.raises(InvalidRangeError):
        ledger.validate_range(date(2024, 6, 10), date(2024, 6, 9))


def test_validate_range_rejects_ranges_beyond_horizon():
    """Test ranges longer than the horizon are rejected."""
    ledger = InventoryLedger(max_horizon_days=30)

    assert ledger.validate_range(date(2024, 6, 1), date(2024, 7, 1)).night_count == 30
    with pytest.raises(InvalidRangeError) as exc_info:
        ledger.validate_range(date(2024, 6, 1), date(2024, 7, 2))

    assert exc_info.value.problem_details["code"] == "INVALID_RANGE"


@pytest.mark.asyncio
async def test_check_availability(database, ledger, seeded_inventory):
    """Test availability reports every night, with 0 for unseeded nights."""
    async with database.transaction() as session:
        availability = await ledger.check_availability(
            session, "DELUXE", StayRange(date(2024, 6, 29), date(2024, 7, 2))
        )

    assert availability == {date(2024, 6, 29): 5, date(2024, 6, 30): 5, date(2024, 7, 1): 0}


@pytest.mark.asyncio
async def test_reserve_increments_every_night(database, ledger, seeded_inventory):
    """Test a reservation holds one room on every night of the stay."""
    stay = StayRange(date(2024, 6, 10), date(2024, 6, 13))
    async with database.transaction() as session:
        await ledger.reserve(session, "DELUXE", stay)

    cells = await cells_by_night(database, ledger, "DELUXE", date(2024, 6, 9), date(2024, 6, 14))
    assert [cells[night].reserved for night in sorted(cells)] == [0, 1, 1, 1, 0]
    assert all(cell.available == cell.total - cell.reserved - cell.blocked for cell in cells.values())


@pytest.mark.asyncio
async def test_reserve_is_all_or_nothing(database, ledger, seeded_inventory):
    """Test a sold-out night fails the whole range without touching other nights."""
    async with database.transaction() as session:
        await ledger.reserve(session, "STANDARD", StayRange(date(2024, 6, 12), date(2024, 6, 13)))

    with pytest.raises(CapacityExceededError) as exc_info:
        async with database.transaction() as session:
            await ledger.reserve(session, "STANDARD", StayRange(date(2024, 6, 10), date(2024, 6, 14)))

    assert exc_info.value.night == date(2024, 6, 12)
    assert exc_info.value.reason == "sold_out"

    cells = await cells_by_night(database, ledger, "STANDARD", date(2024, 6, 10), date(2024, 6, 14))
    assert [cells[night].reserved for night in sorted(cells)] == [0, 0, 1, 0]


@pytest.mark.asyncio
async def test_reserve_fails_on_unseeded_night(database, ledger, seeded_inventory):
    """Test nights without inventory cannot be reserved."""
    with pytest.raises(CapacityExceededError) as exc_info:
        async with database.transaction() as session:
            await ledger.reserve(session, "DELUXE", StayRange(date(2024, 6, 30), date(2024, 7, 2)))

    assert exc_info.value.night == date(2024, 7, 1)


@pytest.mark.asyncio
async def test_reserve_respects_stop_sell(database, ledger, seeded_inventory):
    """Test stop-sell nights report zero and reject reservations."""
    async with database.transaction() as session:
        await ledger.set_stop_sell(session, "DELUXE", StayRange(date(2024, 6, 11), date(2024, 6, 12)), True)

    async with database.transaction() as session:
        availability = await ledger.check_availability(session, "DELUXE", StayRange(date(2024, 6, 10), date(2024, 6, 12)))
    assert availability == {date(2024, 6, 10): 5, date(2024, 6, 11): 0}

    with pytest.raises(CapacityExceededError) as exc_info:
        async with database.transaction() as session:
            await ledger.reserve(session, "DELUXE", StayRange(date(2024, 6, 10), date(2024, 6, 12)))

    assert exc_info.value.reason == "stop_sell"


@pytest.mark.asyncio
async def test_release_restores_availability(database, ledger, seeded_inventory):
    """Test releasing a reservation gives every night back."""
    stay = StayRange(date(2024, 6, 10), date(2024, 6, 13))
    async with database.transaction() as session:
        await ledger.reserve(session, "STANDARD", stay)
    async with database.transaction() as session:
        await ledger.release(session, "STANDARD", stay)

    async with database.transaction() as session:
        availability = await ledger.check_availability(session, "STANDARD", stay)
    assert set(availability.values()) == {1}


@pytest.mark.asyncio
async def test_release_below_zero_is_invariant_violation(database, ledger, seeded_inventory):
    """Test releasing unreserved nights fails before decrementing anything."""
    async with database.transaction() as session:
        await ledger.reserve(session, "DELUXE", StayRange(date(2024, 6, 10), date(2024, 6, 11)))

    with pytest.raises(LedgerInvariantError):
        async with database.transaction() as session:
            await ledger.release(session, "DELUXE", StayRange(date(2024, 6, 10), date(2024, 6, 12)))

    cells = await cells_by_night(database, ledger, "DELUXE", date(2024, 6, 10), date(2024, 6, 12))
    assert cells[date(2024, 6, 10)].reserved == 1
    assert cells[date(2024, 6, 11)].reserved == 0


@pytest.mark.asyncio
async def test_shrink_and_extend(database, ledger, seeded_inventory):
    """Test single-night adjustments used by stay modifications."""
    async with database.transaction() as session:
        await ledger.extend(session, "STANDARD", date(2024, 6, 15))

    with pytest.raises(CapacityExceededError):
        async with database.transaction() as session:
            await ledger.extend(session, "STANDARD", date(2024, 6, 15))

    async with database.transaction() as session:
        await ledger.shrink(session, "STANDARD", date(2024, 6, 15))

    cells = await cells_by_night(database, ledger, "STANDARD", date(2024, 6, 15), date(2024, 6, 16))
    assert cells[date(2024, 6, 15)].reserved == 0


@pytest.mark.asyncio
async def test_block_takes_rooms_out_of_sale(database, ledger, seeded_inventory):
    """Test blocked rooms reduce availability and cannot exceed free rooms."""
    stay = StayRange(date(2024, 6, 10), date(2024, 6, 12))
    async with database.transaction() as session:
        await ledger.block(session, "DELUXE", stay, 4)
        availability = await ledger.check_availability(session, "DELUXE", stay)
    assert set(availability.values()) == {1}

    with pytest.raises(CapacityExceededError):
        async with database.transaction() as session:
            await ledger.block(session, "DELUXE", stay, 2)

    with pytest.raises(CapacityConflictError):
        async with database.transaction() as session:
            await ledger.unblock(session, "DELUXE", stay, 5)

    async with database.transaction() as session:
        await ledger.unblock(session, "DELUXE", stay, 4)
        availability = await ledger.check_availability(session, "DELUXE", stay)
    assert set(availability.values()) == {5}


@pytest.mark.asyncio
async def test_capacity_cannot_drop_below_held_rooms(database, ledger, seeded_inventory):
    """Test capacity changes keep reserved plus blocked within total."""
    stay = StayRange(date(2024, 6, 10), date(2024, 6, 11))
    async with database.transaction() as session:
        await ledger.reserve(session, "DELUXE", stay)
        await ledger.block(session, "DELUXE", stay, 1)

    with pytest.raises(CapacityConflictError):
        async with database.transaction() as session:
            await ledger.set_capacity(session, "DELUXE", stay, 1)

    with pytest.raises(CapacityConflictError):
        async with database.transaction() as session:
            await ledger.adjust_capacity(session, "DELUXE", stay, -4)

    async with database.transaction() as session:
        await ledger.adjust_capacity(session, "DELUXE", stay, -3)

    cells = await cells_by_night(database, ledger, "DELUXE", date(2024, 6, 10), date(2024, 6, 11))
    cell = cells[date(2024, 6, 10)]
    assert (cell.total, cell.reserved, cell.blocked, cell.available) == (2, 1, 1, 0)


@pytest.mark.asyncio
async def test_set_capacity_creates_missing_cells(database, ledger):
    """Test seeding creates cells only where none exist."""
    stay = StayRange(date(2024, 8, 1), date(2024, 8, 4))
    async with database.transaction() as session:
        created = await ledger.set_capacity(session, "SUITE", stay, 2)
    async with database.transaction() as session:
        created_again = await ledger.set_capacity(session, "SUITE", stay, 3)

    assert created == 3
    assert created_again == 0
    cells = await cells_by_night(database, ledger, "SUITE", stay.arrival, stay.departure)
    assert {cell.total for cell in cells.values()} == {3}
