"""JSON logging for the orders service.

Log records are rendered as JSON by python-json-logger and enriched with the
current request id through ``RequestIdFilter``, so every line written while
serving a request can be correlated with it.
"""

import logging

from pythonjsonlogger import jsonlogger

from . import settings
from .middleware import REQUEST_ID_CTX

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"


class RequestIdFilter(logging.Filter):
    """Attach a ``request_id`` attribute to log records.

    The value comes from ``REQUEST_ID_CTX``; outside a request it is the
    placeholder ``"-"`` so formatters can always reference ``%(request_id)s``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = REQUEST_ID_CTX.get()
        return True


def configure_logging(level: str | None = None) -> logging.Logger:
    """Install the JSON handler on the ``orders`` logger once.

    Args:
        level: Log level name, ``settings.LOG_LEVEL`` by default.

    Returns:
        logging.Logger: The configured ``orders`` logger.
    """
    logger = logging.getLogger("orders")
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
        h.addFilter(RequestIdFilter())
        logger.addHandler(h)
    logger.setLevel((level or getattr(settings, "LOG_LEVEL", "info")).upper())
    return logger
