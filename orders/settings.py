"""Runtime configuration for the orders service.

Every value is read once from the environment at import time. Components
look values up through ``getattr(settings, NAME, default)`` when they need
them, so tests can override a single key with ``monkeypatch.setattr``.
"""

import os


def _bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Database
DB_HOST = os.getenv("DB_HOST", "orders-db")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "orders")
DB_USER = os.getenv("DB_USER", "orders_user")
DB_PASSWORD = os.getenv("DB_PASSWORD", "orders-pass")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}",
)
DB_STARTUP_TIMEOUT = float(os.getenv("DB_STARTUP_TIMEOUT", "30"))

# Cart service
CART_SERVICE_URL = os.getenv("CART_SERVICE_URL", "http://cart:9002/cart")
USE_HTTP_ADAPTERS = _bool("USE_HTTP_ADAPTERS", "true")
HTTP_TIMEOUT_SECS = float(os.getenv("HTTP_TIMEOUT_SECS", "2.0"))
HTTP_RETRY_MAX = int(os.getenv("HTTP_RETRY_MAX", "1"))  # total attempts
HTTP_RETRY_BACKOFF_BASE = float(os.getenv("HTTP_RETRY_BACKOFF_BASE", "0.15"))
HTTP_RETRY_MAX_SLEEP = float(os.getenv("HTTP_RETRY_MAX_SLEEP", "0.5"))
HTTP_CIRCUIT_FAIL_THRESHOLD = int(os.getenv("HTTP_CIRCUIT_FAIL_THRESHOLD", "5"))
HTTP_CIRCUIT_RESET_TIMEOUT = float(os.getenv("HTTP_CIRCUIT_RESET_TIMEOUT", "30"))

# Store worker pool
STORE_MAX_WORKERS = int(os.getenv("STORE_MAX_WORKERS", str(min(32, (os.cpu_count() or 1) + 4))))
STORE_MAX_PENDING = int(os.getenv("STORE_MAX_PENDING", "256"))
STORE_SATURATION_POLICY = os.getenv("STORE_SATURATION_POLICY", "wait")  # wait | reject

# Retention sweep
RETENTION_SECONDS = float(os.getenv("RETENTION_SECONDS", "60"))
PURGE_GRACE_SECONDS = float(os.getenv("PURGE_GRACE_SECONDS", "30"))
CLEANUP_INTERVAL_SECONDS = float(os.getenv("CLEANUP_INTERVAL_SECONDS", "180"))
CLEANUP_ENABLED = _bool("CLEANUP_ENABLED", "true")

# Bulk import
BULK_IMPORT_POLICY = os.getenv("BULK_IMPORT_POLICY", "abort")  # abort | continue
API_MAX_BYTES = int(os.getenv("API_MAX_BYTES", str(1 * 1024 * 1024)))

# Server
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "9000"))
UVICORN_WORKERS = int(os.getenv("UVICORN_WORKERS", "1"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "info")
