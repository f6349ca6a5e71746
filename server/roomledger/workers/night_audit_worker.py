"""Background trigger for the nightly audit."""

import logging
from typing import Optional

from ..core.calendar import audit_target_date
from ..core.exceptions import AuditAlreadyRunningError
from ..models.audit import AuditRun
from ..services.night_audit import NightAuditRunner
from .base import BaseWorker

logger = logging.getLogger(__name__)


class NightAuditWorker(BaseWorker):
    """
    Closes the most recent business date once its cutover has passed.

    Each iteration asks the runner to audit that date. Completed dates come
    back unchanged, so polling more often than once a day is harmless.
    """

    def __init__(self, runner: NightAuditRunner, cutover_hour: int, interval_seconds: float = 300):
        """
        Initialize the night audit worker.

        Args:
            runner: Night audit runner to trigger
            cutover_hour: Hour of day at which the business date rolls over
            interval_seconds: How often to check (default: 300s)
        """
        super().__init__(name="NightAudit", interval_seconds=interval_seconds)
        self.runner = runner
        self.cutover_hour = cutover_hour

    async def process(self) -> Optional[AuditRun]:
        """Audit the last closed business date if not already done."""
        target = audit_target_date(self.runner.clock(), self.cutover_hour)
        try:
            run = await self.runner.run_audit(target)
        except AuditAlreadyRunningError:
            logger.info(
                "Night audit already in progress",
                extra={"target_date": target.isoformat(), "worker": self.name}
            )
            return None

        logger.info(
            "Night audit triggered",
            extra={
                "target_date": target.isoformat(),
                "audit_run_id": str(run.id),
                "status": run.status,
                "worker": self.name,
            }
        )
        return run
