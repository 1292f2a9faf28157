"""Garbage collection for the replay ledger."""

from proofage.services.gc.base import GCResult, GCTask
from proofage.services.gc.scheduler import GCScheduler
from proofage.services.gc.tasks import ExpiredAssertionUseGC

__all__ = ["ExpiredAssertionUseGC", "GCResult", "GCScheduler", "GCTask"]
