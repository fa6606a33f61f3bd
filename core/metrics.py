"""
Prometheus metrics instrumentation for the Square payment gateway.

This module sets up FastAPI instrumentation to expose metrics in Prometheus format
at the /metrics endpoint with optional authentication.
"""

import os

from fastapi import Request, status
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

# Domain-specific metrics
payments_total = Counter(
    "square_payments_total",
    "Payment creation attempts by outcome",
    ["outcome"],  # success | failure
)

orders_total = Counter(
    "square_orders_total",
    "Order creation attempts by outcome",
    ["outcome"],
)

webhooks_total = Counter(
    "square_webhooks_total",
    "Webhook notifications received by outcome",
    ["outcome"],  # accepted | unparsed | rejected
)

square_request_latency = Histogram(
    "square_request_latency_seconds",
    "Time taken by calls to the Square API",
    ["endpoint"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


def init_metrics(app):
    """
    Initialize Prometheus metrics instrumentation for the FastAPI app.

    Args:
        app: FastAPI application instance

    Returns:
        Instrumentator instance
    """
    inst = Instrumentator(
        should_group_status_codes=False,
        should_ignore_untemplated=True,
    )
    inst.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
    return inst


def _is_private_address(client_ip: str | None) -> bool:
    return bool(client_ip) and (
        client_ip.startswith("10.")
        or client_ip.startswith("192.168.")
        or client_ip.startswith("172.")
        or client_ip == "127.0.0.1"
    )


def add_metrics_auth_middleware(app):
    """
    Add middleware to protect the /metrics endpoint outside development.
    For production use, set METRICS_AUTH_TOKEN environment variable.
    """

    @app.middleware("http")
    async def metrics_auth_middleware(request: Request, call_next):
        if request.url.path != "/metrics":
            return await call_next(request)

        if os.getenv("ENVIRONMENT", "development") == "development":
            return await call_next(request)

        expected_token = os.getenv("METRICS_AUTH_TOKEN")
        if expected_token and request.headers.get("X-Metrics-Auth") == expected_token:
            return await call_next(request)

        # Allow internal network access (VPN/private networks)
        if _is_private_address(request.client.host if request.client else None):
            return await call_next(request)

        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Metrics endpoint access denied"},
        )
