"""OpenTelemetry setup

Tracing is off unless OTEL_EXPORTER_OTLP_ENDPOINT is set. Outbound provider
calls are traced through the httpx instrumentation, so every hop of a connect
flow shows up under the callback request span.
"""
import logging

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from socialink.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def initialize_tracing(source: Settings = None) -> bool:
    """Install an OTLP trace exporter. Returns False when tracing is disabled or fails to start"""
    source = source or default_settings
    if not source.OTEL_EXPORTER_OTLP_ENDPOINT:
        return False

    try:
        resource = Resource.create({
            "service.name": source.OTEL_SERVICE_NAME,
            "deployment.environment": source.ENVIRONMENT,
        })
        provider = TracerProvider(resource=resource)
        exporter = OTLPSpanExporter(endpoint=source.OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True)
        provider.add_span_processor(BatchSpanProcessor(exporter))
        trace.set_tracer_provider(provider)
    except Exception as e:
        logger.warning(f"Failed to initialize OpenTelemetry: {e}")
        return False

    logger.info(f"OpenTelemetry tracing enabled ({source.OTEL_EXPORTER_OTLP_ENDPOINT})")
    return True


def instrument_app(app, engine) -> None:
    """Trace incoming requests, outbound provider calls and database queries"""
    FastAPIInstrumentor.instrument_app(app)
    HTTPXClientInstrumentor().instrument()
    try:
        SQLAlchemyInstrumentor().instrument(engine=engine)
    except Exception as e:
        logger.warning(f"Failed to instrument SQLAlchemy: {e}")
