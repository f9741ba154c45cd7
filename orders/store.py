"""Async facade over the blocking order repository.

Every repository call is handed to a fixed-size thread pool and awaited on
the event loop, so request handling never blocks on the database. The
number of operations admitted at once is bounded; when the bound is reached
the configured saturation policy either queues the caller (``wait``) or
fails it immediately with ``StorageError("STORE_SATURATED")``
(``reject``).

Any exception raised by the repository is reported as ``StorageError``.
A missing order is not an error: ``find_by_order_id`` returns ``None``.
"""

import asyncio
import functools
import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

from . import settings
from .domain import Order
from .errors import StorageError
from .repo import OrderRepo

logger = logging.getLogger("orders.store")

WAIT = "wait"
REJECT = "reject"


class AsyncOrderStore:
    """``OrderStorePort`` implementation backed by ``OrderRepo``.

    Args:
        repo: Blocking repository doing the actual I/O.
        max_workers: Threads in the worker pool.
        max_pending: Operations admitted at once (running or queued on the
            pool).
        saturation_policy: ``wait`` or ``reject``.
    """

    def __init__(
        self,
        repo: OrderRepo,
        max_workers: int | None = None,
        max_pending: int | None = None,
        saturation_policy: str | None = None,
    ):
        self.repo = repo
        self.max_workers = max_workers or getattr(settings, "STORE_MAX_WORKERS", 4)
        self.max_pending = max_pending or getattr(settings, "STORE_MAX_PENDING", 256)
        self.saturation_policy = saturation_policy or getattr(settings, "STORE_SATURATION_POLICY", WAIT)
        if self.saturation_policy not in (WAIT, REJECT):
            raise ValueError(f"Unknown saturation policy: {self.saturation_policy}")
        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="order-store")
        self._slots = asyncio.Semaphore(self.max_pending)

    @property
    def saturated(self) -> bool:
        return self._slots.locked()

    async def _run(self, op: str, fn, *args):
        if self.saturation_policy == REJECT and self._slots.locked():
            logger.warning("store saturated", extra={"op": op, "max_pending": self.max_pending})
            raise StorageError("STORE_SATURATED", f"{op} rejected: {self.max_pending} operations pending")
        async with self._slots:
            loop = asyncio.get_running_loop()
            try:
                return await loop.run_in_executor(self._executor, functools.partial(fn, *args))
            except Exception as e:
                logger.error("store operation failed", extra={"op": op, "error": repr(e)})
                raise StorageError("STORAGE_ERROR", f"{op} failed: {e}") from e

    async def find_by_order_id(self, order_id: uuid.UUID) -> Order | None:
        return await self._run("find", self.repo.find_by_order_id, order_id)

    async def save(self, order: Order) -> Order:
        return await self._run("save", self.repo.save, order)

    async def delete_by_order_id(self, order_id: uuid.UUID) -> None:
        await self._run("delete", self.repo.delete_by_order_id, order_id)

    async def delete_inserted_before(self, cutoff: datetime, untouched_since: datetime | None = None) -> int:
        return await self._run("delete_older", self.repo.delete_inserted_before, cutoff, untouched_since)

    async def ping(self) -> bool:
        return await self._run("ping", self.repo.ping)

    def close(self) -> None:
        """Shut the worker pool down, waiting for running operations."""
        self._executor.shutdown(wait=True)
