"""Failure taxonomy for the orders service.

Adapters translate collaborator exceptions (httpx, SQLAlchemy, pydantic)
into one of these types so the orchestrator and the HTTP layer only ever
deal with four kinds of failure. Each type carries a short error ``code``
that is returned to clients as ``{"detail": code}`` and the HTTP status it
maps to.
"""


class OrderError(Exception):
    """Base class for every failure surfaced by the orders core."""

    code = "ORDER_ERROR"
    status_code = 500

    def __init__(self, code: str | None = None, message: str | None = None):
        self.code = code or self.code
        super().__init__(message or self.code)


class NotFound(OrderError):
    """The requested order, or the cart it references, does not exist."""

    code = "NOT_FOUND"
    status_code = 404


class UpstreamError(OrderError):
    """The cart service is unavailable or answered with an error."""

    code = "UPSTREAM_UNAVAILABLE"
    status_code = 503


class StorageError(OrderError):
    """A persistence operation failed."""

    code = "STORAGE_ERROR"
    status_code = 500


class MalformedInput(OrderError):
    """A bulk-import payload could not be decoded."""

    code = "MALFORMED_INPUT"
    status_code = 400


class PartialImportError(StorageError):
    """Raised at the end of a continue-on-error bulk import with failures.

    Attributes:
        failures: ``(position, error)`` pairs for every record that could
            not be saved, position being the record index in the payload.
        saved: Number of records that were saved.
    """

    code = "PARTIAL_IMPORT"

    def __init__(self, failures: list[tuple[int, StorageError]], saved: int):
        self.failures = failures
        self.saved = saved
        positions = ", ".join(str(pos) for pos, _ in failures)
        super().__init__(message=f"{len(failures)} record(s) failed at positions [{positions}]; {saved} saved")
