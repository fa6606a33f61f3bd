import os
import time
import uuid

import structlog
from fastapi import Request

from core.logging import BusinessEvents

REQUEST_ID_HEADER = "X-Request-ID"


async def log_api_entry(request: Request, call_next):
    """Middleware to log API entries with request details"""
    # Get a fresh logger each time to ensure test configurations are respected
    log = structlog.get_logger(__name__)

    # Every log line emitted while handling this request carries the id
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)

    # Optionally omit query params in demo mode
    demo_mode = os.getenv("DEMO_MODE", "").lower() in {"1", "true", "yes"}
    started = time.perf_counter()
    response = await call_next(request)
    log.info(
        BusinessEvents.API_ENTRY,
        method=request.method,
        path=request.url.path,
        client_host=request.client.host if request.client else None,
        query_params=None if demo_mode else dict(request.query_params),
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    response.headers[REQUEST_ID_HEADER] = request_id
    return response
