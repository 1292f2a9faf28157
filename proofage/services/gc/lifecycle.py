"""GC lifecycle management for FastAPI lifespan integration."""

from __future__ import annotations

import structlog

from proofage.config import Settings
from proofage.db.session import get_async_session
from proofage.services.gc.scheduler import GCScheduler
from proofage.services.gc.tasks import ExpiredAssertionUseGC

logger = structlog.get_logger()

_gc_scheduler: GCScheduler | None = None


async def init_gc_scheduler(settings: Settings) -> GCScheduler | None:
    """Create and start the GC scheduler if ledger pruning is enabled."""
    global _gc_scheduler

    config = settings.ledger
    logger.info(
        "gc.init",
        enabled=config.prune_enabled,
        interval_seconds=config.prune_interval_seconds,
        retention_grace_seconds=config.retention_grace_seconds,
    )
    if not config.prune_enabled:
        return None

    _gc_scheduler = GCScheduler(
        tasks=[ExpiredAssertionUseGC(config)],
        session_factory=get_async_session,
        interval_seconds=config.prune_interval_seconds,
    )
    await _gc_scheduler.start()
    return _gc_scheduler


async def shutdown_gc_scheduler() -> None:
    """Stop the GC scheduler gracefully."""
    global _gc_scheduler

    if _gc_scheduler is not None:
        await _gc_scheduler.stop()
        _gc_scheduler = None


def get_gc_scheduler() -> GCScheduler | None:
    """Get the current GC scheduler instance (for testing/monitoring)."""
    return _gc_scheduler
