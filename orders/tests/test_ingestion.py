import json
import uuid
from decimal import Decimal

import pytest

from orders.errors import MalformedInput
from orders.ingestion import decode_orders


DOCUMENT = [
    {
        "orderId": "0b7e8f5e-1f4e-4a43-9a0c-7f1b5c2d9e11",
        "products": [
            {
                "id": "5f0c3c1e-2d7a-4c6e-8f7b-1a2b3c4d5e6f",
                "name": "Test product",
                "description": "Test description",
                "price": 10,
                "manufacturer": {"id": "9d8c7b6a-5f4e-4d3c-2b1a-0f9e8d7c6b5a", "name": "manufacturer name"},
                "categories": ["BABY_PRODUCTS"],
                "createdAt": "2024-04-01T09:30:00",
                "reviews": [{"reviewerName": "Name", "comment": "Comment", "rating": 5}],
            }
        ],
        "customerInfo": {"firstName": "Joe", "lastName": "Doe", "email": "joedoe@test.com", "phoneNumber": "555666777"},
        "deliveryInfo": {"address": "Street 1", "city": "London", "postalCode": "33333", "country": "United Kingdom"},
        "paid": True,
        "insertDateTime": "2024-04-01T09:30:00Z",
    },
    {
        "customerInfo": {"firstName": "Ann"},
        "deliveryInfo": {"city": "Paris"},
    },
]


def test_decode_reads_records_in_order():
    orders = decode_orders(json.dumps(DOCUMENT).encode())
    assert len(orders) == 2

    first = orders[0]
    assert first.order_id == uuid.UUID(DOCUMENT[0]["orderId"])
    assert first.paid is True
    p = first.products[0]
    assert p.price == Decimal("10")
    assert p.manufacturer.name == "manufacturer name"
    assert p.categories == ("BABY_PRODUCTS",)
    assert p.reviews[0].rating == 5
    assert first.customer_info.phone_number == "555666777"
    assert first.delivery_info.postal_code == "33333"


def test_decode_tolerates_sparse_records():
    """Missing ids and timestamps are filled in; partial infos are kept as is."""
    second = decode_orders(json.dumps(DOCUMENT).encode())[1]
    assert isinstance(second.order_id, uuid.UUID)
    assert second.products == ()
    assert second.paid is False
    assert second.customer_info.first_name == "Ann"
    assert second.customer_info.email is None


def test_decode_empty_array():
    assert decode_orders(b"[]") == []


@pytest.mark.parametrize(
    "data",
    [
        b"",
        b"   ",
        b"not json",
        b'{"orderId": "0b7e8f5e-1f4e-4a43-9a0c-7f1b5c2d9e11"}',
        b'[{"orderId": "not-a-uuid"}]',
        b'[{"paid": "sometimes"}]',
        b"\xff\xfe\x00",
    ],
)
def test_decode_rejects_malformed_documents(data):
    with pytest.raises(MalformedInput):
        decode_orders(data)
