"""Background workers for the room inventory service."""

from .base import BaseWorker
from .manager import WorkerManager
from .night_audit_worker import NightAuditWorker

__all__ = ["BaseWorker", "NightAuditWorker", "WorkerManager"]
