"""OpenTelemetry helpers for the blueprint service."""
from __future__ import annotations

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from ..config import get_settings

_configured = False


def configure_telemetry() -> None:
    """Configure tracing and metrics exporters once per process.

    Spans are emitted around every document generation; without an OTLP
    endpoint they stay in-process.
    """
    global _configured
    if _configured:
        return
    settings = get_settings()
    resource = Resource(attributes={SERVICE_NAME: settings.observability.otel_service_name})

    tracer_provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(tracer_provider)

    if settings.observability.otel_exporter_otlp_endpoint:
        span_exporter = OTLPSpanExporter(endpoint=settings.observability.otel_exporter_otlp_endpoint)
        tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))

        metric_exporter = OTLPMetricExporter(endpoint=settings.observability.otel_exporter_otlp_endpoint)
        reader = PeriodicExportingMetricReader(metric_exporter)
        meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
        metrics.set_meter_provider(meter_provider)
    _configured = True


__all__ = ["configure_telemetry"]
