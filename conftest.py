import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from orders import providers
from orders.domain import CustomerInfo, DeliveryInfo, Manufacturer, Product, Review, ShoppingCart
from orders.http_adapters import _cart_cb


class FrozenClock:
    """Callable clock for tests; ``advance`` moves it forward."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def isolate_process_state():
    # reset circuit breaker and cached wiring so tests don't leak state
    _cart_cb.on_success()
    providers.get_order_service.cache_clear()
    providers.get_cleanup_scheduler.cache_clear()
    yield
    providers.get_order_service.cache_clear()
    providers.get_cleanup_scheduler.cache_clear()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def customer():
    return CustomerInfo(first_name="Joe", last_name="Doe", email="joedoe@test.com", phone_number="555666777")


@pytest.fixture
def delivery():
    return DeliveryInfo(address="Street 1", city="London", postal_code="33333", country="United Kingdom")


@pytest.fixture
def product():
    stamp = datetime(2024, 4, 1, 9, 30, tzinfo=timezone.utc)
    return Product(
        id=uuid.uuid4(),
        name="Test product",
        description="Test description",
        price=Decimal("10.00"),
        manufacturer=Manufacturer(id=uuid.uuid4(), name="manufacturer name", address="address", contact="contact"),
        categories=("BABY_PRODUCTS",),
        created_at=stamp,
        updated_at=stamp,
        reviews=(Review(reviewer_name="Name", comment="Comment", rating=5, review_date=stamp),),
    )


@pytest.fixture
def cart(product):
    second = Product(id=uuid.uuid4(), name="Second product", price=Decimal("2.50"))
    return ShoppingCart(id=uuid.uuid4(), products=(product, second))
