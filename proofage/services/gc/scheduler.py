"""GC Scheduler - runs GC tasks periodically in the background."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from proofage.services.gc.base import GCResult, GCTask

logger = structlog.get_logger()

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class GCScheduler:
    """Scheduler for GC tasks.

    Each cycle opens a fresh session per task, so a failing task cannot
    poison the next one. Task errors are logged and never stop the loop.

    Usage:
        scheduler = GCScheduler(
            tasks=[ExpiredAssertionUseGC(settings.ledger)],
            session_factory=get_async_session,
            interval_seconds=3600,
        )
        await scheduler.run_once()
        await scheduler.start()
        await scheduler.stop()
    """

    def __init__(
        self,
        tasks: list[GCTask],
        session_factory: SessionFactory,
        interval_seconds: float,
    ) -> None:
        self._tasks = tasks
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._log = logger.bind(service="gc_scheduler")

        self._running = False
        self._task: asyncio.Task | None = None

        # Prevents run_once and the background loop from overlapping
        self._run_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_once(self) -> list[GCResult]:
        """Execute one GC cycle, waiting for any cycle already in progress."""
        async with self._run_lock:
            results = [await self._run_task(task) for task in self._tasks]

        self._log.info(
            "gc.cycle.complete",
            total_cleaned=sum(r.cleaned_count for r in results),
            total_errors=sum(len(r.errors) for r in results),
        )
        return results

    async def _run_task(self, task: GCTask) -> GCResult:
        try:
            async with self._session_factory() as session:
                result = await task.run(session)
        except Exception as e:
            self._log.exception("gc.task.failed", task=task.name, error=str(e))
            return GCResult(task_name=task.name, errors=[f"Task failed: {e}"])

        result.task_name = task.name
        self._log.debug("gc.task.complete", task=task.name, cleaned=result.cleaned_count)
        return result

    async def start(self) -> None:
        """Start the background loop."""
        if self._running:
            self._log.warning("gc.scheduler.already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._background_loop())
        self._log.info("gc.scheduler.started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Stop the background loop, waiting for the current cycle."""
        if not self._running:
            return

        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._log.info("gc.scheduler.stopped")

    async def _background_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception as e:
                self._log.exception("gc.scheduler.cycle_error", error=str(e))

            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
