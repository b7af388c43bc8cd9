"""Prometheus metrics helpers for HTTP and payment observability."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from time import perf_counter

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

HTTP_REQUESTS_TOTAL = Counter(
    "trainerhub_http_requests_total",
    "Total number of HTTP requests handled by the API.",
    ["method", "path", "status_code"],
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "trainerhub_http_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "path"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

PAYMENT_WEBHOOK_EVENTS_TOTAL = Counter(
    "trainerhub_payment_webhook_events_total",
    "Payment provider webhook events by normalized kind and reconciliation outcome.",
    ["event_kind", "outcome"],
)

BOOKING_PAYMENT_TRANSITIONS_TOTAL = Counter(
    "trainerhub_booking_payment_transitions_total",
    "Booking payment status writes by source and result (applied or no-op).",
    ["source", "result"],
)


AUTH_RATE_LIMIT_REFUSALS_TOTAL = Counter(
    "trainerhub_auth_rate_limit_refusals_total",
    "Auth requests refused by the rate limiter, by action.",
    ["action"],
)


def record_rate_limit_refusal(action: str) -> None:
    AUTH_RATE_LIMIT_REFUSALS_TOTAL.labels(action=action).inc()


def record_webhook_event(event_kind: str, outcome: str) -> None:
    """Count a processed webhook event."""
    PAYMENT_WEBHOOK_EVENTS_TOTAL.labels(event_kind=event_kind, outcome=outcome).inc()


def record_payment_transition(source: str, result: str) -> None:
    """Count a booking payment status write attempt."""
    BOOKING_PAYMENT_TRANSITIONS_TOTAL.labels(source=source, result=result).inc()


def _request_path_label(request: Request) -> str:
    route = request.scope.get("route")
    route_path = getattr(route, "path", None)
    if route_path:
        return str(route_path)
    return request.url.path


async def instrument_http_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Track request count and latency for each endpoint."""
    started_at = perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        path_label = _request_path_label(request)
        method_label = request.method.upper()
        duration_seconds = perf_counter() - started_at

        HTTP_REQUESTS_TOTAL.labels(
            method=method_label,
            path=path_label,
            status_code=str(status_code),
        ).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(
            method=method_label,
            path=path_label,
        ).observe(duration_seconds)


def build_metrics_response() -> Response:
    """Return metrics payload in Prometheus text format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
