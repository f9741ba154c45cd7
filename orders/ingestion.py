"""Decoding of bulk-import documents.

A bulk-import document is a JSON array of orders in the same camelCase
shape the API returns. Decoding is all or nothing: a document that is not
valid JSON, is not an array, or contains a record of the wrong shape is
rejected as a whole with ``MalformedInput``.
"""

import logging

from pydantic import TypeAdapter

from .domain import Order
from .errors import MalformedInput
from .schemas import OrderSchema

logger = logging.getLogger("orders.ingestion")

_ORDER_LIST = TypeAdapter(list[OrderSchema])


def decode_orders(data: bytes) -> list[Order]:
    """Decode an uploaded document into order records.

    Args:
        data: Raw bytes of the uploaded file.

    Returns:
        list[Order]: One order per record, in document order. Identifiers
        and timestamps are whatever the document carried (or generated
        placeholders) and are expected to be overwritten by the caller.

    Raises:
        MalformedInput: When the document cannot be decoded.
    """
    if not data or not data.strip():
        raise MalformedInput("EMPTY_DOCUMENT")
    try:
        records = _ORDER_LIST.validate_json(data)
    except ValueError as e:  # ValidationError, or undecodable bytes
        logger.warning("bulk import document rejected", extra={"error": str(e)[:200]})
        raise MalformedInput("MALFORMED_INPUT", str(e)) from e
    return [r.to_domain() for r in records]
