import os

import structlog
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from core.settings import Settings

log = structlog.get_logger(__name__)


def tracing_disabled() -> bool:
    return os.getenv("DISABLE_TRACING", "").lower() in {"1", "true", "yes"}


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Export spans over OTLP, tagged with the gateway's service name.

    Returns None without touching the global provider when tracing is off.
    """
    if tracing_disabled():
        log.info("tracing.disabled", app_name=settings.APP_NAME)
        return None

    provider = TracerProvider(
        resource=Resource.create(
            {
                SERVICE_NAME: settings.APP_NAME,
                "deployment.environment": settings.ENVIRONMENT,
                "square.environment": settings.square_environment,
            }
        )
    )
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)
    log.info(
        "tracing.enabled",
        app_name=settings.APP_NAME,
        square_environment=settings.square_environment,
    )
    return provider
