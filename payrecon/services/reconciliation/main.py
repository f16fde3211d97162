"""Reconciliation service API.

Receives gateway notifications already parsed by the callback layer and
exposes read endpoints over the stored correlation records.
"""

from time import perf_counter

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from payrecon.common.config import settings
from payrecon.common.db import SessionLocal
from payrecon.common.logging import configure_logging, logger, trace_id_ctx
from payrecon.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from payrecon.common.startup import log_startup_config
from payrecon.common.tracing import current_trace_id, instrument_app, setup_tracing
from payrecon.services.reconciliation.config import ReconciliationConfig
from payrecon.services.reconciliation.correlation import ReconciliationError
from payrecon.services.reconciliation.repository import get_order
from payrecon.services.reconciliation.schemas import CorrelationResponse, Notification, NotificationAck
from payrecon.services.reconciliation.service import NotificationService

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(settings)
service = NotificationService(SessionLocal, ReconciliationConfig.from_settings(settings))

app = FastAPI(title="Payment Notification Reconciliation")
instrument_app(app)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Record request count and latency for every HTTP call."""

    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
    trace_token = trace_id_ctx.set(current_trace_id())
    try:
        response = await call_next(request)
        status_code = response.status_code
        route_obj = request.scope.get("route")
        if route_obj is not None and getattr(route_obj, "path", None):
            route = route_obj.path
        return response
    finally:
        trace_id_ctx.reset(trace_token)
        elapsed = max(0.0, perf_counter() - start)
        http_request_duration_seconds.labels(
            service=settings.service_name,
            route=route,
            method=method,
        ).observe(elapsed)
        http_requests_total.labels(
            service=settings.service_name,
            route=route,
            method=method,
            status_code=str(status_code),
        ).inc()


@app.exception_handler(ReconciliationError)
async def reconciliation_error_handler(_: Request, exc: ReconciliationError):
    """Surface stored-data problems instead of acknowledging the notification."""

    logger.error("reconciliation_error error=%s", exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.post("/notifications", response_model=NotificationAck)
def receive_notification(notification: Notification):
    """Match one notification; unmatched ones are acknowledged as well."""

    outcome = service.handle(notification)
    order = outcome.result.order
    return NotificationAck(
        matched=outcome.result.found,
        duplicate=outcome.duplicate,
        order_id=order.order_id if order is not None else None,
        strategy=outcome.result.strategy,
    )


@app.get("/orders/{order_id}/correlation", response_model=CorrelationResponse)
def order_correlation(order_id: str):
    """Return the gateway identifiers stored for one order."""

    with service.session_factory() as db:
        order = get_order(db, order_id)
        if order is None:
            raise HTTPException(status_code=404, detail="order not found")
        record = service.store.load(db, order)
    return CorrelationResponse(
        order_id=order_id,
        schema_version=record.schema_version.value,
        gateway_order_id=record.gateway_order_id,
        authorization_id=record.authorization_id,
        capture_id=record.capture_id,
        refund_ids=sorted(record.refund_ids),
    )


@app.get("/refunds/{refund_id}/order")
def refund_order(refund_id: str):
    """Resolve a refund id to the order it was issued for."""

    with service.session_factory() as db:
        order_id = service.store.find_order_id_by_refund_id(db, refund_id)
    if order_id is None:
        raise HTTPException(status_code=404, detail="refund not found")
    return {"refund_id": refund_id, "order_id": order_id}


@app.get("/health")
def health():
    """Container health check endpoint."""

    return {"ok": True}


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()
