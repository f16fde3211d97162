"""Prometheus metric definitions for the reconciliation service."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


notifications_received_total = Counter(
    "notifications_received_total",
    "Gateway notifications received",
    ["service", "message_type"],
)
notifications_matched_total = Counter(
    "notifications_matched_total",
    "Gateway notifications resolved to an order",
    ["service", "message_type", "strategy"],
)
notifications_unmatched_total = Counter(
    "notifications_unmatched_total",
    "Gateway notifications no order could be found for",
    ["service", "message_type"],
)
order_notes_failed_total = Counter(
    "order_notes_failed_total",
    "Order notes that could not be written",
    ["service"],
)
duplicate_events_skipped_total = Counter(
    "duplicate_events_skipped_total",
    "Duplicate inbox events skipped",
    ["service", "topic"],
)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
