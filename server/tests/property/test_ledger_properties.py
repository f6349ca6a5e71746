"""Property-based tests for inventory ledger invariants."""

import asyncio
from datetime import date, timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from roomledger.core.calendar import StayRange
from roomledger.core.database import Database
from roomledger.core.exceptions import CapacityExceededError
from roomledger.services.inventory_ledger import InventoryLedger

START = date(2024, 6, 1)
NIGHTS = 10
ROOM_TYPE = "DELUXE"

stays = st.tuples(
    st.integers(min_value=0, max_value=NIGHTS - 1),
    st.integers(min_value=1, max_value=5),
).map(lambda t: StayRange(START + timedelta(days=t[0]), START + timedelta(days=min(t[0] + t[1], NIGHTS))))

operations = st.lists(
    st.tuples(st.sampled_from(["reserve", "release", "block"]), stays, st.integers(min_value=0, max_value=50)),
    min_size=1,
    max_size=25,
)


async def snapshot(db, ledger):
    async with db.transaction() as session:
        cells = await ledger.get_cells(session, ROOM_TYPE, StayRange(START, START + timedelta(days=NIGHTS)))
    return {cell.night: (cell.total, cell.reserved, cell.blocked, cell.available) for cell in cells}


async def run_operations(capacity, ops):
    db = Database("sqlite+aiosqlite:///:memory:")
    ledger = InventoryLedger()
    await db.create_all()
    held: list[StayRange] = []
    try:
        async with db.transaction() as session:
            await ledger.set_capacity(session, ROOM_TYPE, StayRange(START, START + timedelta(days=NIGHTS)), capacity)

        for kind, stay, pick in ops:
            before = await snapshot(db, ledger)
            try:
                async with db.transaction() as session:
                    if kind == "reserve":
                        await ledger.reserve(session, ROOM_TYPE, stay)
                        held.append(stay)
                    elif kind == "release" and held:
                        await ledger.release(session, ROOM_TYPE, held.pop(pick % len(held)))
                    elif kind == "block":
                        await ledger.block(session, ROOM_TYPE, stay, 1)
            except CapacityExceededError:
                # All or nothing: a rejected request leaves every night as it was
                assert await snapshot(db, ledger) == before

            for total, reserved, blocked, available in (await snapshot(db, ledger)).values():
                assert reserved + blocked <= total
                assert available == total - reserved - blocked
                assert available >= 0

        # Reserved counters match the stays still held
        final = await snapshot(db, ledger)
        for night, (_, reserved, _, _) in final.items():
            assert reserved == sum(1 for stay in held if stay.covers(night))
    finally:
        await db.dispose()


@settings(max_examples=30, deadline=None)
@given(capacity=st.integers(min_value=0, max_value=4), ops=operations)
def test_ledger_counters_stay_consistent(capacity, ops):
    """Test availability never goes negative and failed reserves change nothing."""
    asyncio.run(run_operations(capacity, ops))
