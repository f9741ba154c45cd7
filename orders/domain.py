"""Domain models, ports and the order orchestration service.

This module contains the dataclasses that make up an order snapshot,
protocol definitions (ports) for the external collaborators the service
depends on (the cart service, the order store and the bulk-import
decoder), and ``OrderService``, which sequences those collaborators for
every order operation.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import AsyncIterator, Callable, Iterable, Protocol

from . import settings
from .errors import NotFound, PartialImportError, StorageError

logger = logging.getLogger("orders.service")


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


# ---- Enums ----
class ImportPolicy(str, Enum):
    """How a bulk import reacts to a record that cannot be saved.

    ABORT stops at the first failing record and propagates its error.
    CONTINUE attempts every record and reports all failures at the end.
    """

    ABORT = "abort"
    CONTINUE = "continue"


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class Manufacturer:
    id: uuid.UUID | None = None
    name: str | None = None
    address: str | None = None
    contact: str | None = None


@dataclass(frozen=True)
class Review:
    reviewer_name: str | None = None
    comment: str | None = None
    rating: int | None = None
    review_date: datetime | None = None


@dataclass(frozen=True)
class Product:
    """A product snapshot as listed in a shopping cart.

    Products are copied verbatim from the cart into the order; the core
    never validates or mutates them.
    """

    id: uuid.UUID | None = None
    name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    manufacturer: Manufacturer | None = None
    categories: tuple[str, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None
    reviews: tuple[Review, ...] = ()


@dataclass(frozen=True)
class CustomerInfo:
    first_name: str
    last_name: str
    email: str
    phone_number: str


@dataclass(frozen=True)
class DeliveryInfo:
    address: str
    city: str
    postal_code: str
    country: str


@dataclass(frozen=True)
class ShoppingCart:
    """Cart returned by the cart service. Read-only, never persisted."""

    id: uuid.UUID
    products: tuple[Product, ...] = ()


@dataclass
class Order:
    """A persisted order snapshot.

    Attributes:
        order_id: Identifier generated when the order is created.
        products: Products copied from the cart at creation time.
        customer_info: Customer contact details.
        delivery_info: Delivery address.
        paid: Payment flag. Only ever moves from False to True.
        insert_date_time: UTC creation time, used by the retention sweep.

    Everything except ``paid`` is fixed once the order exists.
    """

    order_id: uuid.UUID
    products: tuple[Product, ...]
    customer_info: CustomerInfo
    delivery_info: DeliveryInfo
    paid: bool = False
    insert_date_time: datetime = field(default_factory=utcnow)

    def pay(self) -> bool:
        """Mark the order as paid.

        Returns:
            bool: True when the flag changed, False when the order was
            already paid (the transition is a no-op in that case).
        """
        if self.paid:
            return False
        self.paid = True
        return True


# ---- Ports (DIP) ----
class CartPort(Protocol):
    """Port for reading shopping carts from the cart service."""

    async def get_cart(self, cart_id: uuid.UUID) -> ShoppingCart:
        """Fetch a cart.

        Raises:
            NotFound: If the cart does not exist upstream.
            UpstreamError: For any other failure of the cart service.
        """
        ...


class OrderStorePort(Protocol):
    """Port for asynchronous order persistence.

    Absence is reported as ``None`` from ``find_by_order_id``; every other
    failure is raised as ``StorageError``.
    """

    async def find_by_order_id(self, order_id: uuid.UUID) -> Order | None: ...

    async def save(self, order: Order) -> Order: ...

    async def delete_by_order_id(self, order_id: uuid.UUID) -> None: ...

    async def delete_inserted_before(self, cutoff: datetime, untouched_since: datetime | None = None) -> int: ...


OrderDecoder = Callable[[bytes], list[Order]]


# ---- Domain service ----
class OrderService:
    """Orchestrates every order operation over the cart and store ports.

    Within one call the steps run strictly in sequence (cart fetch before
    persistence, lookup before delete or finalize). No retries are made and
    no locking is done across calls: concurrent writes to the same order
    are last-write-wins at the store.
    """

    def __init__(
        self,
        cart: CartPort,
        store: OrderStorePort,
        decoder: OrderDecoder | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the service with its collaborators.

        Args:
            cart: CartPort used to fetch shopping carts.
            store: OrderStorePort used to persist orders.
            decoder: Callable turning an uploaded document into orders.
                Defaults to ``orders.ingestion.decode_orders``.
            clock: Source of the current UTC time.
        """
        if decoder is None:
            from .ingestion import decode_orders

            decoder = decode_orders
        self.cart = cart
        self.store = store
        self.decoder = decoder
        self.clock = clock

    async def create(self, cart_id: uuid.UUID, customer_info: CustomerInfo, delivery_info: DeliveryInfo) -> Order:
        """Create an order from the products of a shopping cart.

        Args:
            cart_id: Identifier of the cart in the cart service.
            customer_info: Already validated customer details.
            delivery_info: Already validated delivery address.

        Returns:
            Order: The saved order, unpaid, with a fresh identifier.

        Raises:
            NotFound: If the cart does not exist.
            UpstreamError: If the cart service fails.
            StorageError: If the order cannot be saved.
        """
        cart = await self.cart.get_cart(cart_id)
        order = Order(
            order_id=uuid.uuid4(),
            products=tuple(cart.products),
            customer_info=customer_info,
            delivery_info=delivery_info,
            paid=False,
            insert_date_time=self.clock(),
        )
        saved = await self.store.save(order)
        logger.info("order created", extra={"order_id": str(saved.order_id), "cart_id": str(cart_id)})
        return saved

    async def retrieve(self, order_id: uuid.UUID) -> Order:
        """Return the order with the given id.

        Raises:
            NotFound: If no such order exists.
        """
        return await self._require(order_id)

    async def delete(self, order_id: uuid.UUID) -> None:
        """Delete an order.

        The order is looked up first so that a missing order (``NotFound``)
        is told apart from a failing delete (``StorageError``).
        """
        order = await self._require(order_id)
        await self.store.delete_by_order_id(order.order_id)
        logger.info("order deleted", extra={"order_id": str(order_id)})

    async def finalize(self, order_id: uuid.UUID) -> Order:
        """Mark an order as paid and save it.

        Finalizing an already paid order succeeds and leaves it unchanged.

        Raises:
            NotFound: If no such order exists.
            StorageError: If the order cannot be saved.
        """
        order = await self._require(order_id)
        changed = order.pay()
        saved = await self.store.save(order)
        logger.info("order finalized", extra={"order_id": str(order_id), "changed": changed})
        return saved

    async def bulk_import(self, data: bytes, policy: ImportPolicy | str | None = None) -> AsyncIterator[Order]:
        """Decode an uploaded document and return a lazy stream of saved orders.

        The payload is decoded before anything is saved, so a malformed
        document fails the whole import. Each decoded record gets a new
        identifier and insertion time before it is saved; client supplied
        values are discarded.

        Args:
            data: Raw uploaded bytes.
            policy: Failure policy, defaults to ``settings.BULK_IMPORT_POLICY``.

        Returns:
            AsyncIterator[Order]: Single-use iterator over the saved orders,
            in payload order.

        Raises:
            MalformedInput: If the payload cannot be decoded.
        """
        records = self.decoder(data)
        policy = ImportPolicy(policy or getattr(settings, "BULK_IMPORT_POLICY", ImportPolicy.ABORT))
        logger.info("bulk import decoded", extra={"records": len(records), "policy": policy.value})
        return self._save_each(records, policy)

    async def _save_each(self, records: Iterable[Order], policy: ImportPolicy) -> AsyncIterator[Order]:
        failures: list[tuple[int, StorageError]] = []
        saved = 0
        for position, record in enumerate(records):
            fresh = replace(record, order_id=uuid.uuid4(), insert_date_time=self.clock())
            try:
                order = await self.store.save(fresh)
            except StorageError as e:
                if policy is ImportPolicy.ABORT:
                    logger.error("bulk import aborted", extra={"position": position, "saved": saved})
                    raise
                logger.warning("bulk import record failed", extra={"position": position, "error": e.code})
                failures.append((position, e))
                continue
            saved += 1
            yield order
        if failures:
            raise PartialImportError(failures, saved)

    async def purge_stale(self, retention: timedelta | None = None, grace: timedelta | None = None) -> int:
        """Delete orders inserted before ``now - retention``.

        Paid and unpaid orders are purged alike. Orders written within the
        ``grace`` window are kept, so an order finalized while the sweep
        runs is not lost.

        Returns:
            int: Number of deleted orders.
        """
        if retention is None:
            retention = timedelta(seconds=getattr(settings, "RETENTION_SECONDS", 60))
        if grace is None:
            grace = timedelta(seconds=getattr(settings, "PURGE_GRACE_SECONDS", 0))
        now = self.clock()
        cutoff = now - retention
        untouched_since = now - grace if grace > timedelta(0) else None
        deleted = await self.store.delete_inserted_before(cutoff, untouched_since)
        logger.info("stale orders purged", extra={"deleted": deleted, "cutoff": cutoff.isoformat()})
        return deleted

    async def _require(self, order_id: uuid.UUID) -> Order:
        order = await self.store.find_by_order_id(order_id)
        if order is None:
            raise NotFound("ORDER_NOT_FOUND", f"Order {order_id} not found")
        return order
