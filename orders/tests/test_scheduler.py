import asyncio
import uuid

import pytest

from orders.adapters import CartStub, InMemoryOrderStore
from orders.domain import Order, OrderService
from orders.errors import StorageError
from orders.scheduler import CleanupScheduler


class FailingPurgeService:
    """Service double whose first ``fail`` sweeps raise."""

    def __init__(self, fail=1):
        self.fail = fail
        self.calls = 0

    async def purge_stale(self, retention=None):
        self.calls += 1
        if self.calls <= self.fail:
            raise StorageError("STORAGE_ERROR", "database unavailable")
        return 0


@pytest.mark.asyncio
async def test_run_once_purges_and_records_success(cart, customer, delivery, clock):
    store = InMemoryOrderStore(clock=clock)
    service = OrderService(CartStub(), store, clock=clock)
    old = Order(uuid.uuid4(), cart.products, customer, delivery, insert_date_time=clock())
    await store.save(old)
    clock.advance(minutes=5)

    scheduler = CleanupScheduler(service, interval=60)
    assert await scheduler.run_once() is True

    assert old.order_id not in store
    status = scheduler.status()
    assert status["runs"] == 1
    assert status["failures"] == 0
    assert status["last_purged"] == 1
    assert status["last_error"] is None
    assert status["last_success_at"] is not None


@pytest.mark.asyncio
async def test_run_once_swallows_and_records_failure():
    scheduler = CleanupScheduler(FailingPurgeService(fail=1), interval=60)
    assert await scheduler.run_once() is False
    assert scheduler.failures == 1
    assert scheduler.runs == 0
    assert "database unavailable" in scheduler.last_error

    assert await scheduler.run_once() is True
    assert scheduler.last_error is None


@pytest.mark.asyncio
async def test_timer_keeps_running_after_a_failed_sweep():
    service = FailingPurgeService(fail=2)
    scheduler = CleanupScheduler(service, interval=0.01)
    scheduler.start()
    try:
        for _ in range(200):
            if scheduler.runs >= 1:
                break
            await asyncio.sleep(0.01)
        assert scheduler.running
        assert scheduler.failures == 2
        assert scheduler.runs >= 1
    finally:
        await scheduler.stop()
    assert not scheduler.running


@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_is_safe_twice():
    scheduler = CleanupScheduler(FailingPurgeService(fail=0), interval=3600)
    scheduler.start()
    task = scheduler._task
    scheduler.start()
    assert scheduler._task is task

    await scheduler.stop()
    await scheduler.stop()
    assert scheduler.status()["running"] is False


def test_default_interval_is_three_minutes():
    assert CleanupScheduler(FailingPurgeService()).interval == 180
