"""Periodic background worker loop."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Runs ``process`` every ``interval_seconds`` until stopped.

    A failed iteration is logged and counted; the loop carries on with the
    next one. ``status()`` reports the loop's health for readiness checks.
    """

    def __init__(self, name: str, interval_seconds: float = 60):
        """
        Args:
            name: Worker name for logging
            interval_seconds: Delay between the start of two iterations
        """
        self.name = name
        self.interval_seconds = interval_seconds
        self.iterations = 0
        self.failures = 0
        self.last_error: Optional[str] = None
        self.last_run_at: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @abstractmethod
    async def process(self) -> Any:
        """Run one iteration."""

    async def start(self) -> None:
        if self.is_running:
            logger.warning("Worker already running", extra={"worker": self.name})
            return

        self._task = asyncio.create_task(self._loop(), name=f"worker-{self.name}")
        logger.info(
            "Worker started",
            extra={"worker": self.name, "interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for the current iteration to unwind."""
        if self._task is None:
            logger.warning("Worker not running", extra={"worker": self.name})
            return

        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        logger.info(
            "Worker stopped",
            extra={"worker": self.name, "iterations": self.iterations, "failures": self.failures}
        )

    async def run_once(self) -> Any:
        """
        Run a single iteration and record its outcome.

        Errors are logged and counted, never raised.

        Returns:
            Whatever ``process`` returned, or None if it failed
        """
        started = time.monotonic()
        self.iterations += 1
        self.last_run_at = datetime.now(timezone.utc)
        result = None
        try:
            result = await self.process()
            self.last_error = None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.failures += 1
            self.last_error = f"{type(e).__name__}: {e}"
            logger.error(
                "Worker iteration failed",
                exc_info=True,
                extra={"worker": self.name, "error": self.last_error, "failures": self.failures}
            )

        logger.debug(
            "Worker iteration completed",
            extra={"worker": self.name, "duration_seconds": round(time.monotonic() - started, 3)}
        )
        return result

    def status(self) -> Dict[str, Any]:
        return {
            "running": self.is_running,
            "iterations": self.iterations,
            "failures": self.failures,
            "last_error": self.last_error,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
        }

    async def _loop(self) -> None:
        while True:
            started = time.monotonic()
            await self.run_once()
            await asyncio.sleep(max(0.0, self.interval_seconds - (time.monotonic() - started)))
