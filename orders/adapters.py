"""In-process stub adapters for the orders domain ports.

These stubs implement ``CartPort`` and ``OrderStorePort`` without any
network or database access. They are intended for unit tests and local
development where deterministic behavior is useful and external services
are not required.
"""

import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Mapping

from .domain import CartPort, Order, OrderStorePort, Product, ShoppingCart, utcnow
from .errors import NotFound


class CartStub(CartPort):
    """Stub implementation of ``CartPort``.

    With an explicit ``carts`` mapping only those carts exist and any other
    id is ``NotFound``. Without one, every id resolves to a cart holding
    ``default_products``.
    """

    def __init__(self, carts: Mapping[uuid.UUID, ShoppingCart] | None = None, default_products: Iterable[Product] = ()):
        self.carts = dict(carts) if carts is not None else None
        self.default_products = tuple(default_products)
        self.calls: list[uuid.UUID] = []

    async def get_cart(self, cart_id: uuid.UUID) -> ShoppingCart:
        self.calls.append(cart_id)
        if self.carts is None:
            return ShoppingCart(id=cart_id, products=self.default_products)
        try:
            return self.carts[cart_id]
        except KeyError:
            raise NotFound("CART_NOT_FOUND", f"Shopping cart {cart_id} not found") from None


class InMemoryOrderStore(OrderStorePort):
    """Dict-backed ``OrderStorePort``.

    Orders are copied on the way in and out so callers never share state
    with the store, as with a real database. The time of the last write of
    each order is tracked for the purge grace window.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock
        self._orders: dict[uuid.UUID, Order] = {}
        self._written_at: dict[uuid.UUID, datetime] = {}
        self.saves = 0
        self.deletes = 0

    def __len__(self) -> int:
        return len(self._orders)

    def __contains__(self, order_id: uuid.UUID) -> bool:
        return order_id in self._orders

    async def find_by_order_id(self, order_id: uuid.UUID) -> Order | None:
        order = self._orders.get(order_id)
        return replace(order) if order else None

    async def save(self, order: Order) -> Order:
        self.saves += 1
        self._orders[order.order_id] = replace(order)
        self._written_at[order.order_id] = self.clock()
        return replace(order)

    async def delete_by_order_id(self, order_id: uuid.UUID) -> None:
        self.deletes += 1
        self._orders.pop(order_id, None)
        self._written_at.pop(order_id, None)

    async def delete_inserted_before(self, cutoff: datetime, untouched_since: datetime | None = None) -> int:
        stale = [
            oid
            for oid, o in self._orders.items()
            if o.insert_date_time < cutoff and (untouched_since is None or self._written_at[oid] < untouched_since)
        ]
        for oid in stale:
            del self._orders[oid]
            del self._written_at[oid]
        return len(stale)
