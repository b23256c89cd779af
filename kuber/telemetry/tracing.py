from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from kuber.telemetry.logging import get_logger

_provider: TracerProvider | None = None


def configure_tracing(service_name: str, endpoint: str | None) -> bool:
    """Export spans over OTLP/HTTP when *endpoint* is set. Returns True when active."""
    global _provider
    if _provider is not None:
        return True
    if not endpoint:
        return False

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    _provider = provider
    get_logger(__name__).info("tracing.enabled", endpoint=endpoint, service_name=service_name)
    return True


def shutdown_tracing() -> None:
    """Flush pending spans; safe to call when tracing was never enabled."""
    if _provider is not None:
        _provider.shutdown()


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


__all__ = ["configure_tracing", "get_tracer", "shutdown_tracing"]
