"""Test configuration and fixtures."""

from datetime import date, datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from roomledger.core.config import Settings
from roomledger.core.database import Database
from roomledger.services.booking_service import BookingService
from roomledger.services.inventory_ledger import InventoryLedger
from roomledger.services.inventory_service import InventoryService
from roomledger.services.night_audit import NightAuditRunner

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

STANDARD = "STANDARD"
DELUXE = "DELUXE"

# Seeded nights are [SEASON_START, SEASON_END)
SEASON_START = date(2024, 6, 1)
SEASON_END = date(2024, 7, 1)


class FixedClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock fixed at 2024-06-05 10:00 UTC."""
    return FixedClock(datetime(2024, 6, 5, 10, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture(scope="function")
async def database():
    """Create a test database with all tables."""
    db = Database(TEST_DATABASE_URL, lock_timeout_seconds=5.0)
    await db.create_all()

    yield db

    await db.drop_all()
    await db.dispose()


@pytest.fixture
def ledger(clock):
    return InventoryLedger(max_horizon_days=365, clock=clock)


@pytest.fixture
def booking_service(database, ledger, clock):
    return BookingService(database, ledger, clock=clock)


@pytest.fixture
def inventory_service(database, ledger, clock):
    return InventoryService(database, ledger, clock=clock)


@pytest.fixture
def night_audit_runner(database, booking_service, clock):
    return NightAuditRunner(database, booking_service, no_show_grace_days=0, stale_after_seconds=3600, clock=clock)


@pytest_asyncio.fixture
async def seeded_inventory(inventory_service):
    """One STANDARD room and five DELUXE rooms for every night of June 2024."""
    await inventory_service.seed_capacity(STANDARD, SEASON_START, SEASON_END, 1, actor="test")
    await inventory_service.seed_capacity(DELUXE, SEASON_START, SEASON_END, 5, actor="test")
    return inventory_service


@pytest.fixture
def test_settings():
    """Settings for an app that neither creates schema nor starts workers."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        environment="development",
        create_schema=False,
        enable_workers=False,
    )


@pytest_asyncio.fixture(scope="function")
async def test_app(test_settings, database, clock):
    """Create a test FastAPI application sharing the test database."""
    from roomledger.main import create_app

    return create_app(test_settings, database=database, clock=clock)


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_booking_data():
    """Sample booking request for a three-night DELUXE stay."""
    return {
        "guest_ref": "guest_456",
        "room_type": DELUXE,
        "arrival": "2024-06-10",
        "departure": "2024-06-13",
        "source": "website",
    }
