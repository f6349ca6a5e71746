"""Schema creation and sample inventory for local environments."""

import asyncio
import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import func, select

from .core.config import Settings, get_settings
from .core.database import Database
from .models.inventory import InventoryCell
from .services.inventory_ledger import InventoryLedger, utc_now
from .services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

# Room type -> rooms for sale per night
SAMPLE_ROOM_TYPES = {
    "STANDARD": 40,
    "DELUXE": 12,
    "SUITE": 3,
}

SAMPLE_ACTOR = "setup"


async def setup_database(database: Database) -> None:
    """Create any missing tables."""
    logger.info("Setting up database...")
    await database.create_all()
    logger.info("Database schema ready")


async def create_sample_data(
    database: Database,
    inventory_service: InventoryService,
    start: date,
    nights: int = 90,
) -> bool:
    """
    Seed sample room types for ``nights`` nights from ``start``.

    Does nothing when the ledger already holds inventory.

    Returns:
        True if sample inventory was created
    """
    async with database.transaction() as session:
        existing = await session.scalar(select(func.count()).select_from(InventoryCell))

    if existing:
        logger.info("Inventory already exists, skipping sample data", extra={"cells": existing})
        return False

    end = start + timedelta(days=nights)
    for room_type, total in SAMPLE_ROOM_TYPES.items():
        await inventory_service.seed_capacity(
            room_type, start, end, total, SAMPLE_ACTOR, reason="sample inventory"
        )

    logger.info(
        "Sample inventory created",
        extra={"room_types": list(SAMPLE_ROOM_TYPES), "start": start.isoformat(), "nights": nights}
    )
    return True


async def run_setup(settings: Optional[Settings] = None, with_sample_data: bool = True) -> None:
    """Create the schema and, optionally, sample inventory."""
    settings = settings or get_settings()
    database = Database(settings.database_url, lock_timeout_seconds=settings.lock_timeout_seconds)
    ledger = InventoryLedger(max_horizon_days=settings.max_horizon_days)

    try:
        await setup_database(database)
        if with_sample_data:
            await create_sample_data(database, InventoryService(database, ledger), utc_now().date())
    finally:
        await database.dispose()

    logger.info("Setup completed successfully!")


def main() -> None:
    """Run setup against the configured database."""
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_setup())


if __name__ == "__main__":
    main()
