"""HTTP adapter for the cart service with a circuit breaker and context headers.

This module implements ``CartPort`` using ``httpx.AsyncClient``. It adds:

- Request correlation: propagates ``X-Request-ID`` from the ContextVar set by
    the request-id middleware.
- A circuit breaker for the cart service so an unhealthy dependency is not
    hammered, with HALF_OPEN probing after a timeout.
- An optional retry policy with exponential backoff for transport errors and
    5xx. ``HTTP_RETRY_MAX`` counts total attempts and defaults to 1, so no
    retry happens unless configured.

Status mapping: 200 is a cart, 4xx is ``NotFound("CART_NOT_FOUND")``,
anything else is ``UpstreamError``.
"""

import asyncio
import logging
import threading
import time
import uuid
from enum import Enum
from typing import Optional

import httpx
from pydantic import ValidationError

from . import settings
from .domain import CartPort, ShoppingCart
from .errors import NotFound, UpstreamError
from .middleware import REQUEST_ID_CTX
from .schemas import ShoppingCartSchema

logger = logging.getLogger("orders.cart")


# ---------------- Circuit Breaker ---------------- #

class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    """Minimal circuit breaker with CLOSED/OPEN/HALF_OPEN states.

    Transitions:
    - CLOSED → OPEN when consecutive failures reach ``fail_threshold``.
    - OPEN → HALF_OPEN after ``reset_timeout`` seconds.
    - HALF_OPEN → CLOSED on a successful probe; only one probe is let
      through at a time; back to OPEN on failure.

    Thread-safe via an internal lock.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = CircuitState.CLOSED
        self._opened_at = 0.0
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        """Current state, applying the OPEN → HALF_OPEN timeout."""
        with self._lock:
            if self._state is CircuitState.OPEN and (time.monotonic() - self._opened_at) >= self.reset_timeout:
                self._state = CircuitState.HALF_OPEN
                self._probe_in_flight = False
            return self._state

    def before_call(self) -> CircuitState:
        """Admit or reject a call.

        Raises:
            UpstreamError: ``CIRCUIT_OPEN`` while open, or
                ``CIRCUIT_HALF_OPEN_BUSY`` while a probe is in flight.
        """
        with self._lock:
            st = self.state
            if st is CircuitState.OPEN:
                raise UpstreamError("CIRCUIT_OPEN", f"{self.name} circuit is open")
            if st is CircuitState.HALF_OPEN:
                if self._probe_in_flight:
                    raise UpstreamError("CIRCUIT_HALF_OPEN_BUSY", f"{self.name} probe already in flight")
                self._probe_in_flight = True
            return st

    def on_success(self):
        with self._lock:
            self._failures = 0
            self._state = CircuitState.CLOSED
            self._probe_in_flight = False

    def on_failure(self):
        with self._lock:
            self._failures += 1
            if self._state is CircuitState.HALF_OPEN or (
                self._failures >= self.fail_threshold and self._state is not CircuitState.OPEN
            ):
                self._state = CircuitState.OPEN
                self._opened_at = time.monotonic()
                self._probe_in_flight = False
                logger.warning("circuit opened", extra={"circuit": self.name, "failures": self._failures})

    def on_finish(self):
        with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                self._probe_in_flight = False


_cart_cb = CircuitBreaker(
    "cart",
    getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5),
    getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0),
)


# ---------------- Helpers ---------------- #

def _request_headers(extra: Optional[dict] = None) -> dict:
    """Build outgoing headers with ``X-Request-ID`` when a request is active."""
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def _retry_policy() -> tuple[int, float]:
    """Return retry configuration as (max_attempts, backoff_base_seconds)."""
    return (
        max(1, getattr(settings, "HTTP_RETRY_MAX", 1)),
        getattr(settings, "HTTP_RETRY_BACKOFF_BASE", 0.15),
    )


def _should_retry(resp: Optional[httpx.Response], exc: Optional[Exception]) -> bool:
    """Retry only on transport errors or HTTP 5xx."""
    if exc is not None:
        return True
    return resp is not None and 500 <= resp.status_code < 600


# ---------------- Cart Adapter ---------------- #

class HttpCartClient(CartPort):
    """HTTP client for the cart service.

    Args:
        base_url: Cart service base URL; carts live at ``{base_url}/{cartId}``.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport, used by tests to fake the
            service with ``httpx.MockTransport``.
        breaker: Circuit breaker to use, the module-wide one by default.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        breaker: CircuitBreaker | None = None,
    ):
        self.base_url = (base_url or settings.CART_SERVICE_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS
        self.transport = transport
        self.breaker = breaker or _cart_cb

    async def get_cart(self, cart_id: uuid.UUID) -> ShoppingCart:
        """Fetch a shopping cart.

        Args:
            cart_id: Cart identifier.

        Returns:
            ShoppingCart: The cart and its products.

        Raises:
            NotFound: On any 4xx answer (not counted as a circuit failure).
            UpstreamError: On 5xx, transport errors, an unreadable body or
                an open circuit.
        """
        max_attempts, backoff = _retry_policy()
        tries = 0
        state = self.breaker.before_call()
        headers = _request_headers({"X-Circuit-State": state.value, "X-Retry-Count": "0"})
        url = f"{self.base_url}/{cart_id}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                while True:
                    resp = None
                    exc = None
                    try:
                        resp = await client.get(url, headers=headers)
                        if resp.status_code == 200:
                            cart = self._parse(resp)
                            self.breaker.on_success()
                            return cart
                        if 400 <= resp.status_code < 500:
                            self.breaker.on_success()  # business outcome, not a circuit failure
                            logger.info("cart not found", extra={"cart_id": str(cart_id), "status": resp.status_code})
                            raise NotFound("CART_NOT_FOUND", f"Shopping cart {cart_id} not found")
                    except httpx.RequestError as e:
                        exc = e

                    tries += 1
                    headers["X-Retry-Count"] = str(tries)

                    if tries >= max_attempts or not _should_retry(resp, exc):
                        self.breaker.on_failure()
                        detail = repr(exc) if exc else f"status {resp.status_code}"
                        logger.error("cart service failed", extra={"cart_id": str(cart_id), "detail": detail})
                        raise UpstreamError("UPSTREAM_UNAVAILABLE", f"Cart service failed: {detail}") from exc

                    sleep_s = backoff * (2 ** (tries - 1))  # exponential backoff
                    cap = getattr(settings, "HTTP_RETRY_MAX_SLEEP", 0.5)
                    await asyncio.sleep(min(sleep_s, cap))
        finally:
            self.breaker.on_finish()

    def _parse(self, resp: httpx.Response) -> ShoppingCart:
        try:
            return ShoppingCartSchema.model_validate_json(resp.content).to_domain()
        except ValidationError as e:
            self.breaker.on_failure()
            raise UpstreamError("UPSTREAM_BAD_RESPONSE", "Cart service returned an unreadable cart") from e
