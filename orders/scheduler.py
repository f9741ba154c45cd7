"""Periodic cleanup of stale orders.

``CleanupScheduler`` is a process-wide timer with an explicit lifecycle:
the application starts it on startup and stops it on shutdown. On every
tick it asks the order service to purge stale orders. A failed sweep is
logged and recorded, then simply retried on the next tick; it never stops
the timer and never reaches request handling.
"""

import asyncio
import logging
from datetime import datetime, timedelta

from . import settings
from .domain import OrderService, utcnow

logger = logging.getLogger("orders.cleanup")


class CleanupScheduler:
    """Run ``OrderService.purge_stale`` every ``interval`` seconds.

    Attributes:
        runs: Completed sweeps.
        failures: Failed sweeps.
        last_success_at: UTC time of the last successful sweep.
        last_purged: Orders deleted by the last successful sweep.
        last_error: Message of the last failure, cleared on success.
    """

    def __init__(
        self,
        service: OrderService,
        interval: float | None = None,
        retention: timedelta | None = None,
    ):
        self.service = service
        self.interval = interval if interval is not None else getattr(settings, "CLEANUP_INTERVAL_SECONDS", 180)
        self.retention = retention
        self.runs = 0
        self.failures = 0
        self.last_success_at: datetime | None = None
        self.last_purged: int | None = None
        self.last_error: str | None = None
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the timer on the running event loop. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name="orders-cleanup")
        logger.info("cleanup scheduler started", extra={"interval": self.interval})

    async def stop(self) -> None:
        """Cancel the timer and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("cleanup scheduler stopped")

    async def run_once(self) -> bool:
        """Run one sweep.

        Returns:
            bool: True if the sweep succeeded, False if it failed.
        """
        try:
            purged = await self.service.purge_stale(self.retention)
        except Exception as e:
            self.failures += 1
            self.last_error = str(e)
            logger.error("Error occurred during old orders removal", extra={"error": repr(e)})
            return False
        self.runs += 1
        self.last_purged = purged
        self.last_error = None
        self.last_success_at = utcnow()
        logger.info("Successfully removed old orders", extra={"purged": purged})
        return True

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.run_once()

    def status(self) -> dict:
        return {
            "running": self.running,
            "runs": self.runs,
            "failures": self.failures,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "last_purged": self.last_purged,
            "last_error": self.last_error,
        }
