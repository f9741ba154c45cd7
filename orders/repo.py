"""SQLAlchemy repository for orders.

This module persists order snapshots using SQLAlchemy. Products and the
customer/delivery details are embedded by value as JSON columns, in the
same camelCase shape the API uses, so an order is always read back exactly
as it was written.

The schema is a single ``orders`` table keyed by the public order id, with
an indexed insertion timestamp for the retention sweep and an ``updated_at``
column recording the last write. Every call here blocks; the async facade
lives in ``orders.store``. The connection string comes from
``settings.DATABASE_URL``.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable

from sqlalchemy import JSON, Boolean, DateTime, String, create_engine, delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, mapped_column
from sqlalchemy.types import TypeDecorator

from . import settings
from .domain import Order, utcnow
from .schemas import CustomerInfoOut, DeliveryInfoOut, OrderSchema, ProductSchema


class UtcDateTime(TypeDecorator):
    """DateTime column that always stores naive UTC and returns aware UTC.

    Keeps comparisons correct on backends without timezone support (SQLite).
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    pass


class OrderRow(Base):
    """SQLAlchemy model representing a stored order.

    Attributes:
        order_id: Public order UUID (string form) used as primary key.
        products: JSON list of product snapshots.
        customer_info: JSON object with the customer details.
        delivery_info: JSON object with the delivery address.
        paid: Whether the order has been finalized.
        insert_date_time: UTC creation time, used for retention.
        updated_at: UTC time of the last write of this row.
    """

    __tablename__ = "orders"

    order_id = mapped_column(String(36), primary_key=True)
    products = mapped_column(JSON, nullable=False, default=list)
    customer_info = mapped_column(JSON, nullable=False)
    delivery_info = mapped_column(JSON, nullable=False)
    paid = mapped_column(Boolean, nullable=False, default=False)
    insert_date_time = mapped_column(UtcDateTime, nullable=False, index=True)
    updated_at = mapped_column(UtcDateTime, nullable=False)


@lru_cache(maxsize=None)
def get_engine() -> Engine:
    """Engine for ``settings.DATABASE_URL``, created on first use."""
    return create_engine(settings.DATABASE_URL, pool_pre_ping=True)


def init_db(engine: Engine | None = None) -> None:
    """Create the orders schema if it does not exist yet."""
    Base.metadata.create_all(engine or get_engine())


def _to_row(order: Order, now: datetime) -> OrderRow:
    wire = OrderSchema.from_domain(order).to_json_dict()
    return OrderRow(
        order_id=str(order.order_id),
        products=wire["products"],
        customer_info=wire["customerInfo"],
        delivery_info=wire["deliveryInfo"],
        paid=order.paid,
        insert_date_time=order.insert_date_time,
        updated_at=now,
    )


def _to_domain(row: OrderRow) -> Order:
    return OrderSchema(
        order_id=uuid.UUID(row.order_id),
        products=[ProductSchema.model_validate(p) for p in row.products],
        customer_info=CustomerInfoOut.model_validate(row.customer_info),
        delivery_info=DeliveryInfoOut.model_validate(row.delivery_info),
        paid=row.paid,
        insert_date_time=row.insert_date_time,
    ).to_domain()


class OrderRepo:
    """Repository class for order persistence.

    Provides lookup, upsert, delete by id and the retention delete. All
    methods open their own short-lived session.
    """

    def __init__(self, engine: Engine | None = None, clock: Callable[[], datetime] = utcnow):
        self.engine = engine or get_engine()
        self.clock = clock

    @contextmanager
    def session(self):
        """Yield a SQLAlchemy session bound to the repository engine.

        The session is automatically closed on context exit.
        """
        with Session(self.engine) as s:
            yield s

    def find_by_order_id(self, order_id: uuid.UUID) -> Order | None:
        """Look up an order.

        Returns:
            Order | None: The stored order, or None if absent.
        """
        with self.session() as s:
            row = s.get(OrderRow, str(order_id))
            return _to_domain(row) if row else None

    def save(self, order: Order) -> Order:
        """Insert or replace an order and return it as stored."""
        with self.session() as s:
            row = s.merge(_to_row(order, self.clock()))
            s.commit()
            return _to_domain(row)

    def delete_by_order_id(self, order_id: uuid.UUID) -> None:
        with self.session() as s:
            s.execute(
                delete(OrderRow)
                .where(OrderRow.order_id == str(order_id))
                .execution_options(synchronize_session=False)
            )
            s.commit()

    def delete_inserted_before(self, cutoff: datetime, untouched_since: datetime | None = None) -> int:
        """Delete orders inserted strictly before ``cutoff``.

        Args:
            cutoff: Orders with an earlier insertion time are deleted.
            untouched_since: When given, orders written at or after this
                time are kept even if they are older than ``cutoff``.

        Returns:
            int: Number of deleted rows.
        """
        stmt = (
            delete(OrderRow)
            .where(OrderRow.insert_date_time < cutoff)
            .execution_options(synchronize_session=False)
        )
        if untouched_since is not None:
            stmt = stmt.where(OrderRow.updated_at < untouched_since)
        with self.session() as s:
            result = s.execute(stmt)
            s.commit()
            return result.rowcount or 0

    def ping(self) -> bool:
        """Return True when the database answers a trivial query."""
        with self.session() as s:
            s.execute(select(1))
        return True
