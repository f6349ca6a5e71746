"""Database engine, declarative base and the unit-of-work transaction scope."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from .exceptions import LockTimeoutError

logger = logging.getLogger(__name__)

# SQLSTATE 55P03 lock_not_available
_LOCK_NOT_AVAILABLE = "55P03"


class Base(DeclarativeBase):
    """Declarative base for all models."""


class Database:
    """
    Owns the async engine and hands out transactional sessions.

    Every core operation runs inside exactly one ``transaction()``. On
    PostgreSQL row locks taken with ``SELECT ... FOR UPDATE`` are bounded by
    ``lock_timeout``. SQLite has no row locks, so units of work against it
    are serialized by an in-process lock held for the whole transaction.
    """

    def __init__(self, url: str, echo: bool = False, lock_timeout_seconds: float = 5.0):
        self.url = url
        self.lock_timeout_seconds = lock_timeout_seconds
        self.is_sqlite = url.startswith("sqlite")

        engine_kwargs = {"echo": echo, "future": True}
        if self.is_sqlite:
            # In-memory databases need a single shared connection
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        else:
            engine_kwargs["pool_pre_ping"] = True

        self.engine = create_async_engine(url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        self._serial_lock = asyncio.Lock() if self.is_sqlite else None

    @asynccontextmanager
    async def _serialized(self) -> AsyncIterator[None]:
        if self._serial_lock is None:
            yield
            return

        try:
            await asyncio.wait_for(self._serial_lock.acquire(), timeout=self.lock_timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.warning(
                "Timed out waiting for serialized transaction",
                extra={"timeout_seconds": self.lock_timeout_seconds}
            )
            raise LockTimeoutError(self.lock_timeout_seconds) from e

        try:
            yield
        finally:
            self._serial_lock.release()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session inside a transaction.

        Commits when the block exits normally and rolls back on any error, so
        a unit of work either applies completely or not at all.

        Raises:
            LockTimeoutError: If the range lock could not be acquired in time
        """
        async with self._serialized():
            async with self.session_factory() as session:
                try:
                    async with session.begin():
                        if not self.is_sqlite:
                            timeout_ms = int(self.lock_timeout_seconds * 1000)
                            await session.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))
                        yield session
                except DBAPIError as e:
                    sqlstate = getattr(e.orig, "sqlstate", None) or getattr(e.orig, "pgcode", None)
                    if sqlstate == _LOCK_NOT_AVAILABLE:
                        raise LockTimeoutError(self.lock_timeout_seconds) from e
                    raise

    async def create_all(self) -> None:
        """Create all tables."""
        # Import models so they register on the metadata
        from .. import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        """Drop all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Close database connections."""
        await self.engine.dispose()
