"""Service provider helpers for wiring OrderService with its ports.

``get_order_service`` returns the process-wide ``OrderService``. When
``settings.USE_HTTP_ADAPTERS`` is truthy the service talks to the cart
service over HTTP and persists through SQLAlchemy behind the async store;
otherwise it is wired with the in-process stubs, which is handy for local
development. ``get_cleanup_scheduler`` returns the timer bound to that
service. The API resolves both through FastAPI dependencies, so tests
replace them with ``app.dependency_overrides``.
"""

from functools import lru_cache

from . import settings
from .adapters import CartStub, InMemoryOrderStore
from .domain import OrderService
from .http_adapters import HttpCartClient
from .repo import OrderRepo
from .scheduler import CleanupScheduler
from .store import AsyncOrderStore


@lru_cache(maxsize=None)
def get_order_service() -> OrderService:
    """Return the configured OrderService instance.

    Returns:
        OrderService: A service instance with appropriate ports.
    """
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        return OrderService(
            cart=HttpCartClient(),
            store=AsyncOrderStore(OrderRepo()),
        )

    return OrderService(cart=CartStub(), store=InMemoryOrderStore())


@lru_cache(maxsize=None)
def get_cleanup_scheduler() -> CleanupScheduler:
    return CleanupScheduler(get_order_service())
