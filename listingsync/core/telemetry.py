from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from listingsync.core.config import settings


_configured = False


def setup_tracing() -> None:
    global _configured
    if _configured or not settings.telemetry_enabled:
        return
    resource = Resource.create({"service.name": settings.service_name, "deployment.environment": settings.env})
    provider = TracerProvider(resource=resource)
    processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{settings.otlp_endpoint}/v1/traces"))
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)

    HTTPXClientInstrumentor().instrument()
    _configured = True


def setup_telemetry(app) -> None:
    if not settings.telemetry_enabled:
        return
    setup_tracing()
    FastAPIInstrumentor.instrument_app(app)
