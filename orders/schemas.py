"""Pydantic schemas for the orders API and the cart service.

This module exposes the request validation schemas used by the API (the
"upstream" validation the orchestrator relies on), the camelCase wire
representation of orders and carts, and the mapping between those schemas
and the domain dataclasses.
"""

import re
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .domain import CustomerInfo, DeliveryInfo, Manufacturer, Order, Product, Review, ShoppingCart


CARD_NUMBER_RE = re.compile(r"^[0-9]{12,19}$")
MONTH_RE = re.compile(r"^(0[1-9]|1[0-2])$")
YEAR_RE = re.compile(r"^([0-9]{2}|[0-9]{4})$")
CVV_RE = re.compile(r"^[0-9]{3,4}$")


class WireModel(BaseModel):
    """Base for schemas exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---- Product snapshots (copied verbatim, no validation) ----
class ManufacturerSchema(WireModel):
    id: uuid.UUID | None = None
    name: str | None = None
    address: str | None = None
    contact: str | None = None


class ReviewSchema(WireModel):
    reviewer_name: str | None = None
    comment: str | None = None
    rating: int | None = None
    review_date: datetime | None = None


class ProductSchema(WireModel):
    id: uuid.UUID | None = None
    name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    manufacturer: ManufacturerSchema | None = None
    categories: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    reviews: list[ReviewSchema] = Field(default_factory=list)

    def to_domain(self) -> Product:
        m = self.manufacturer
        return Product(
            id=self.id,
            name=self.name,
            description=self.description,
            price=self.price,
            manufacturer=Manufacturer(**m.model_dump()) if m else None,
            categories=tuple(self.categories),
            created_at=self.created_at,
            updated_at=self.updated_at,
            reviews=tuple(Review(**r.model_dump()) for r in self.reviews),
        )

    @classmethod
    def from_domain(cls, p: Product) -> "ProductSchema":
        m = p.manufacturer
        return cls(
            id=p.id,
            name=p.name,
            description=p.description,
            price=p.price,
            manufacturer=ManufacturerSchema(id=m.id, name=m.name, address=m.address, contact=m.contact) if m else None,
            categories=list(p.categories),
            created_at=p.created_at,
            updated_at=p.updated_at,
            reviews=[
                ReviewSchema(
                    reviewer_name=r.reviewer_name,
                    comment=r.comment,
                    rating=r.rating,
                    review_date=r.review_date,
                )
                for r in p.reviews
            ],
        )


class ShoppingCartSchema(WireModel):
    """Cart body returned by ``GET {CART_SERVICE_URL}/{cartId}``."""

    id: uuid.UUID
    products: list[ProductSchema] = Field(default_factory=list)

    def to_domain(self) -> ShoppingCart:
        return ShoppingCart(id=self.id, products=tuple(p.to_domain() for p in self.products))


# ---- Customer / delivery (validated before reaching the service) ----
class NonBlankModel(WireModel):
    """Schema whose string fields are all required and non-blank."""

    @field_validator("*")
    @classmethod
    def not_blank(cls, v):
        """Reject blank strings and strip surrounding whitespace.

        Raises:
            ValueError: When the value is empty or only whitespace.
        """
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("must not be blank")
        return v


class CustomerInfoIn(NonBlankModel):
    first_name: str
    last_name: str
    email: str
    phone_number: str

    def to_domain(self) -> CustomerInfo:
        return CustomerInfo(**self.model_dump())


class DeliveryInfoIn(NonBlankModel):
    address: str
    city: str
    postal_code: str
    country: str

    def to_domain(self) -> DeliveryInfo:
        return DeliveryInfo(**self.model_dump())


class CreateOrderDTO(WireModel):
    """Body of ``POST /order/{cartId}``.

    Attributes:
        customer_info: Customer details, every field required.
        delivery_info: Delivery address, every field required.
    """

    customer_info: CustomerInfoIn
    delivery_info: DeliveryInfoIn


class PaymentRequestDTO(NonBlankModel):
    """Body of ``POST /order/{orderId}/finalize``.

    The payment instrument is only validated here; the order service never
    sees it.

    Attributes:
        card_number: 12 to 19 digits.
        expiry_month: Two-digit month, 01-12.
        expiry_year: Two- or four-digit year.
        cvv: 3 or 4 digits.
        card_holder: Name on the card.
    """

    card_number: str
    expiry_month: str
    expiry_year: str
    cvv: str
    card_holder: str

    @field_validator("card_number")
    @classmethod
    def validate_card_number(cls, v: str) -> str:
        v2 = v.replace(" ", "")
        if not CARD_NUMBER_RE.match(v2):
            raise ValueError("Invalid card number")
        return v2

    @field_validator("expiry_month")
    @classmethod
    def validate_month(cls, v: str) -> str:
        if not MONTH_RE.match(v):
            raise ValueError("Invalid expiry month")
        return v

    @field_validator("expiry_year")
    @classmethod
    def validate_year(cls, v: str) -> str:
        if not YEAR_RE.match(v):
            raise ValueError("Invalid expiry year")
        return v

    @field_validator("cvv")
    @classmethod
    def validate_cvv(cls, v: str) -> str:
        if not CVV_RE.match(v):
            raise ValueError("Invalid CVV")
        return v


# ---- Orders ----
class CustomerInfoOut(WireModel):
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone_number: str | None = None


class DeliveryInfoOut(WireModel):
    address: str | None = None
    city: str | None = None
    postal_code: str | None = None
    country: str | None = None


class OrderSchema(WireModel):
    """Full camelCase representation of an order.

    Used for API responses, for the JSON columns of the orders table and
    for records of a bulk-import document. ``orderId`` and
    ``insertDateTime`` are optional on input because bulk import replaces
    them anyway.
    """

    order_id: uuid.UUID | None = None
    products: list[ProductSchema] = Field(default_factory=list)
    customer_info: CustomerInfoOut = Field(default_factory=CustomerInfoOut)
    delivery_info: DeliveryInfoOut = Field(default_factory=DeliveryInfoOut)
    paid: bool = False
    insert_date_time: datetime | None = None

    def to_domain(self) -> Order:
        kwargs = {}
        if self.insert_date_time is not None:
            kwargs["insert_date_time"] = self.insert_date_time
        return Order(
            order_id=self.order_id or uuid.uuid4(),
            products=tuple(p.to_domain() for p in self.products),
            customer_info=CustomerInfo(**self.customer_info.model_dump()),
            delivery_info=DeliveryInfo(**self.delivery_info.model_dump()),
            paid=self.paid,
            **kwargs,
        )

    @classmethod
    def from_domain(cls, o: Order) -> "OrderSchema":
        return cls(
            order_id=o.order_id,
            products=[ProductSchema.from_domain(p) for p in o.products],
            customer_info=CustomerInfoOut(**vars(o.customer_info)),
            delivery_info=DeliveryInfoOut(**vars(o.delivery_info)),
            paid=o.paid,
            insert_date_time=o.insert_date_time,
        )

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
