"""Persistence tests for the SQLAlchemy order repository.

They run against an in-memory SQLite database shared by every thread
(``StaticPool``), so the same engine can also back the async store tests.
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from orders.domain import Order
from orders.repo import OrderRepo, init_db


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def repo(engine, clock):
    return OrderRepo(engine, clock=clock)


@pytest.fixture
def order(cart, customer, delivery, clock):
    return Order(
        order_id=uuid.uuid4(),
        products=cart.products,
        customer_info=customer,
        delivery_info=delivery,
        paid=False,
        insert_date_time=clock(),
    )


def test_save_then_find_round_trips_every_field(repo, order):
    saved = repo.save(order)
    found = repo.find_by_order_id(order.order_id)
    assert saved == order
    assert found == order


def test_find_missing_returns_none(repo):
    assert repo.find_by_order_id(uuid.uuid4()) is None


def test_save_existing_order_replaces_it(repo, order):
    repo.save(order)
    order.pay()
    repo.save(order)
    assert repo.find_by_order_id(order.order_id).paid is True


def test_delete_by_order_id(repo, order):
    repo.save(order)
    repo.delete_by_order_id(order.order_id)
    assert repo.find_by_order_id(order.order_id) is None


def test_delete_inserted_before_is_strict(repo, order, clock):
    repo.save(order)
    assert repo.delete_inserted_before(order.insert_date_time) == 0
    assert repo.delete_inserted_before(order.insert_date_time + timedelta(microseconds=1)) == 1
    assert repo.find_by_order_id(order.order_id) is None


def test_delete_inserted_before_keeps_recently_written_rows(repo, order, clock):
    repo.save(order)
    clock.advance(minutes=5)
    cutoff = clock() - timedelta(minutes=1)

    assert repo.delete_inserted_before(cutoff, untouched_since=order.insert_date_time) == 0
    assert repo.delete_inserted_before(cutoff, untouched_since=clock()) == 1


def test_ping(repo):
    assert repo.ping() is True
