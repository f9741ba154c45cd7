"""Tests for the async store facade: worker pool, error mapping, saturation."""

import asyncio
import threading
import uuid

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from orders.adapters import CartStub
from orders.domain import Order, OrderService
from orders.errors import StorageError
from orders.repo import OrderRepo, init_db
from orders.store import AsyncOrderStore


@pytest.fixture
def repo(clock):
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(eng)
    yield OrderRepo(eng, clock=clock)
    eng.dispose()


@pytest.fixture
def order(cart, customer, delivery, clock):
    return Order(uuid.uuid4(), cart.products, customer, delivery, insert_date_time=clock())


class BlockingRepo:
    """Repo double whose calls block until released, to fill the pool."""

    def __init__(self):
        self.release = threading.Event()
        self.started = threading.Semaphore(0)

    def find_by_order_id(self, order_id):
        self.started.release()
        self.release.wait(5)
        return None


class BrokenRepo:
    def find_by_order_id(self, order_id):
        raise OperationalError("select", {}, Exception("connection refused"))

    def save(self, order):
        raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_operations_run_off_the_event_loop(repo, order):
    loop_thread = threading.get_ident()
    seen = []
    original = repo.save

    def spy(o):
        seen.append(threading.get_ident())
        return original(o)

    repo.save = spy
    store = AsyncOrderStore(repo, max_workers=2)
    try:
        await store.save(order)
    finally:
        store.close()
    assert seen and seen[0] != loop_thread


@pytest.mark.asyncio
async def test_round_trip_and_absence(repo, order):
    store = AsyncOrderStore(repo, max_workers=2)
    try:
        assert await store.find_by_order_id(order.order_id) is None
        await store.save(order)
        assert await store.find_by_order_id(order.order_id) == order
        await store.delete_by_order_id(order.order_id)
        assert await store.find_by_order_id(order.order_id) is None
    finally:
        store.close()


@pytest.mark.asyncio
async def test_repository_errors_become_storage_errors():
    store = AsyncOrderStore(BrokenRepo(), max_workers=1)
    try:
        with pytest.raises(StorageError) as e:
            await store.find_by_order_id(uuid.uuid4())
        assert isinstance(e.value.__cause__, OperationalError)

        with pytest.raises(StorageError):
            await store.save(object())
    finally:
        store.close()


@pytest.mark.asyncio
async def test_reject_policy_fails_fast_when_saturated():
    repo = BlockingRepo()
    store = AsyncOrderStore(repo, max_workers=1, max_pending=1, saturation_policy="reject")
    try:
        pending = asyncio.ensure_future(store.find_by_order_id(uuid.uuid4()))
        await asyncio.get_running_loop().run_in_executor(None, repo.started.acquire)
        assert store.saturated

        with pytest.raises(StorageError) as e:
            await store.find_by_order_id(uuid.uuid4())
        assert e.value.code == "STORE_SATURATED"

        repo.release.set()
        assert await pending is None
    finally:
        repo.release.set()
        store.close()


@pytest.mark.asyncio
async def test_wait_policy_queues_until_a_slot_frees():
    repo = BlockingRepo()
    store = AsyncOrderStore(repo, max_workers=1, max_pending=1, saturation_policy="wait")
    try:
        first = asyncio.ensure_future(store.find_by_order_id(uuid.uuid4()))
        await asyncio.get_running_loop().run_in_executor(None, repo.started.acquire)
        second = asyncio.ensure_future(store.find_by_order_id(uuid.uuid4()))
        await asyncio.sleep(0)
        assert not second.done()

        repo.release.set()
        assert await first is None
        assert await second is None
    finally:
        repo.release.set()
        store.close()


def test_unknown_saturation_policy_is_rejected(repo):
    with pytest.raises(ValueError):
        AsyncOrderStore(repo, saturation_policy="drop")


@pytest.mark.asyncio
async def test_service_over_sqlite_store(repo, cart, customer, delivery, clock):
    """End to end through the real store: create, finalize, purge."""
    store = AsyncOrderStore(repo, max_workers=2)
    service = OrderService(CartStub({cart.id: cart}), store, clock=clock)
    try:
        created = await service.create(cart.id, customer, delivery)
        assert (await service.finalize(created.order_id)).paid is True
        assert await service.retrieve(created.order_id) == await service.finalize(created.order_id)

        clock.advance(minutes=10)
        assert await service.purge_stale() == 1
        assert await store.find_by_order_id(created.order_id) is None
    finally:
        store.close()
