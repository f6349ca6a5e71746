"""Registry owning the application's background workers."""

import asyncio
import logging
from typing import Any, Dict

from .base import BaseWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """Starts, stops and reports on workers registered under a key."""

    def __init__(self):
        self.workers: Dict[str, BaseWorker] = {}

    def register(self, key: str, worker: BaseWorker) -> None:
        """
        Register a worker under ``key``.

        Raises:
            ValueError: If a worker is already registered under ``key``
        """
        if key in self.workers:
            raise ValueError(f"Worker already registered: {key}")
        self.workers[key] = worker

    async def start_all(self) -> None:
        for key, worker in self.workers.items():
            await worker.start()
        logger.info("Workers started", extra={"workers": sorted(self.workers)})

    async def stop_all(self) -> None:
        """Stop every running worker, logging failures instead of raising them."""
        running = [(key, worker) for key, worker in self.workers.items() if worker.is_running]
        results = await asyncio.gather(*(worker.stop() for _, worker in running), return_exceptions=True)

        for (key, _), result in zip(running, results):
            if isinstance(result, Exception):
                logger.error("Failed to stop worker", extra={"worker": key, "error": str(result)})

        logger.info("Workers stopped", extra={"workers": [key for key, _ in running]})

    def get_worker(self, key: str) -> BaseWorker:
        """
        Raises:
            KeyError: If no worker is registered under ``key``
        """
        return self.workers[key]

    def get_worker_status(self) -> Dict[str, Dict[str, Any]]:
        """Status of each worker, keyed by registration key."""
        return {key: worker.status() for key, worker in self.workers.items()}
