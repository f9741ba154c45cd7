"""Orders service API built with FastAPI.

This module exposes the order endpoints, a health probe and the process
lifecycle. Request bodies are validated with Pydantic models before they
reach the service; the order work itself is delegated to ``OrderService``
obtained from ``orders.providers``. Failures raised by the service are
mapped to HTTP statuses by a single exception handler:

- ``NotFound`` → 404
- ``MalformedInput`` and request validation errors → 400
- ``UpstreamError`` → 503
- ``StorageError`` → 500

The cleanup scheduler is started on startup and stopped on shutdown.
"""

import time
import uuid

import uvicorn

from fastapi import Depends, FastAPI, File, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request
from starlette.responses import Response

from . import settings
from .domain import OrderService
from .errors import OrderError, PartialImportError
from .logging_config import configure_logging
from .middleware import RequestIdMiddleware, UploadSizeLimitMiddleware
from .providers import get_cleanup_scheduler, get_order_service
from .repo import get_engine, init_db
from .schemas import CreateOrderDTO, OrderSchema, PaymentRequestDTO
from .scheduler import CleanupScheduler

logger = configure_logging()

app = FastAPI(title="Orders Service")
app.add_middleware(UploadSizeLimitMiddleware)
app.add_middleware(RequestIdMiddleware)


@app.on_event("startup")
def _startup_db():
    if not getattr(settings, "USE_HTTP_ADAPTERS", True):
        return
    # wait briefly until the database accepts connections
    deadline = time.time() + getattr(settings, "DB_STARTUP_TIMEOUT", 30)
    engine = get_engine()
    while True:
        try:
            with engine.connect():
                pass
            break
        except Exception:
            if time.time() > deadline:
                raise
            time.sleep(1)
    init_db(engine)


@app.on_event("startup")
async def _start_cleanup():
    if getattr(settings, "CLEANUP_ENABLED", True):
        get_cleanup_scheduler().start()


@app.on_event("shutdown")
async def _shutdown():
    await get_cleanup_scheduler().stop()
    close = getattr(get_order_service().store, "close", None)
    if close:
        close()


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    body = {"detail": exc.code}
    if isinstance(exc, PartialImportError):
        body["failed_positions"] = [pos for pos, _ in exc.failures]
        body["saved"] = exc.saved
    if exc.status_code >= 500:
        logger.error("request failed", extra={"detail": exc.code, "error": str(exc)})
    return JSONResponse(body, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"detail": jsonable_encoder(exc.errors())}, status_code=400)


def _out(order) -> dict:
    return OrderSchema.from_domain(order).to_json_dict()


@app.get("/health")
async def health(
    service: OrderService = Depends(get_order_service),
    scheduler: CleanupScheduler = Depends(get_cleanup_scheduler),
):
    """Liveness/health probe with database and cleanup components.

    Returns:
        JSONResponse: 200 when the store answers, 503 otherwise.
    """
    db_ok = True
    ping = getattr(service.store, "ping", None)
    if ping:
        try:
            db_ok = await ping()
        except OrderError:
            db_ok = False
    return JSONResponse(
        {"ok": db_ok, "components": {"db": {"ok": db_ok}, "cleanup": scheduler.status()}},
        status_code=200 if db_ok else 503,
    )


# Declared before "/order/{cart_id}" so the literal path wins.
@app.post("/order/upload")
async def upload_orders(file: UploadFile = File(...), service: OrderService = Depends(get_order_service)):
    """Bulk-import orders from an uploaded JSON document.

    Returns:
        list[dict]: The saved orders, in document order, each with a new id
        and insertion time.
    """
    data = await file.read()
    orders = await service.bulk_import(data)
    return [_out(o) async for o in orders]


@app.post("/order/{cart_id}", status_code=201)
async def create_order(cart_id: uuid.UUID, req: CreateOrderDTO, service: OrderService = Depends(get_order_service)):
    order = await service.create(cart_id, req.customer_info.to_domain(), req.delivery_info.to_domain())
    return _out(order)


@app.get("/order/{order_id}")
async def retrieve_order(order_id: uuid.UUID, service: OrderService = Depends(get_order_service)):
    return _out(await service.retrieve(order_id))


@app.delete("/order/{order_id}")
async def delete_order(order_id: uuid.UUID, service: OrderService = Depends(get_order_service)):
    await service.delete(order_id)
    return Response(status_code=200)


@app.post("/order/{order_id}/finalize")
async def finalize_order(
    order_id: uuid.UUID,
    payment: PaymentRequestDTO,
    service: OrderService = Depends(get_order_service),
):
    """Mark an order as paid.

    The payment body is validated here and not used any further.
    """
    return _out(await service.finalize(order_id))


def run():
    uvicorn.run(
        "orders.main:app",
        host=settings.HOST,
        port=settings.PORT,
        workers=settings.UVICORN_WORKERS,
        log_level=settings.LOG_LEVEL,
    )


if __name__ == "__main__":
    run()
