"""
Square Payment Gateway - Main Application Entry Point

This module initializes the FastAPI application and sets up the core routing.
It fronts the Square API for a storefront: location lookup, order and payment
creation, and webhook ingestion.
"""

import os
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from starlette.concurrency import run_in_threadpool

from api import routes, webhooks
from api.middleware import log_api_entry
from core.dependencies import (
    clear_settings,
    get_gateway,
    get_settings,
    init_settings,
)
from core.logging import configure_logging
from core.metrics import add_metrics_auth_middleware, init_metrics
from core.settings import Settings
from core.tracing import init_tracer
from payments.errors import GatewayError
from payments.gateway import PaymentGateway

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI application startup and shutdown events."""
    # Startup
    init_settings()
    settings = get_settings()

    init_tracer(settings)

    log.info(
        "app.startup",
        app_name=settings.APP_NAME,
        environment=settings.ENVIRONMENT,
        square_environment=settings.square_environment,
        webhook_verification=bool(settings.SQUARE_WEBHOOK_SIGNATURE_KEY),
    )

    yield
    # Shutdown
    clear_settings()


app = FastAPI(
    title="Square Payment Gateway",
    description="""
    ## Square Payment Gateway

    A thin adapter between a storefront and the Square API.

    ### Endpoints:
    - **Locations**: resolve the merchant's Square location id
    - **Orders**: create orders with a fresh idempotency key per call
    - **Payments**: charge a card nonce against an order
    - **Webhooks**: receive Square event notifications (HMAC verified)
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Initialize FastAPI instrumentation
FastAPIInstrumentor.instrument_app(app)

# Initialize Prometheus metrics
init_metrics(app)

# Add metrics authentication middleware (for production)
add_metrics_auth_middleware(app)

# Add logging middleware
app.middleware("http")(log_api_entry)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "https://127.0.0.1:4200").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)


@app.exception_handler(GatewayError)
async def gateway_exception_handler(request: Request, exc: GatewayError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log.exception("app.unhandled_error", path=request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": str(exc), "status_code": None, "errors": []},
    )


@app.get("/")
async def root():
    """Root endpoint providing API information."""
    return {
        "name": "Square Payment Gateway",
        "version": "1.0.0",
        "message": "Hello, Square Payment Gateway!",
        "endpoints": {
            "location": "GET /api/get-location-id",
            "payment": "POST /api/process-payment",
            "order": "POST /api/create-order",
            "webhook": "POST /payment-webhook",
            "health": "GET /health",
            "metrics": "GET /metrics",
        },
    }


@app.get("/health")
async def health(
    check_upstream: bool = False,
    settings: Settings = Depends(get_settings),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """Health check endpoint to verify API status."""
    result = {
        "status": "ok",
        "app_name": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "square_environment": settings.square_environment,
    }
    if check_upstream:
        reachable = await run_in_threadpool(gateway.client.test_connection)
        result["square"] = "ok" if reachable else "unreachable"
    return result


app.include_router(routes.router, prefix="/api")
app.include_router(webhooks.router)


def main():
    configure_logging()
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
