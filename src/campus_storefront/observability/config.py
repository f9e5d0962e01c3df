"""OpenTelemetry and logging setup."""

import logging
import os
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from pythonjsonlogger import jsonlogger

logger = logging.getLogger(__name__)

DEFAULT_OTLP_ENDPOINT = "http://localhost:4318"
METRIC_EXPORT_INTERVAL_MS = 60000

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s %(trace_id)s %(span_id)s"


def get_service_resource() -> Resource:
    """Describe this deployment for exported telemetry.

    Returns:
        Resource carrying ``service.name`` and ``deployment.environment``
    """
    return Resource.create(
        {
            "service.name": os.getenv("OTEL_SERVICE_NAME", "campus-storefront"),
            "deployment.environment": os.getenv("ENVIRONMENT", "development"),
        }
    )


def _otlp_endpoint() -> str:
    return os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", DEFAULT_OTLP_ENDPOINT).rstrip("/")


def setup_tracing(resource: Resource) -> None:
    """Send spans to the collector at ``OTEL_EXPORTER_OTLP_ENDPOINT``.

    Args:
        resource: Resource attached to every span
    """
    endpoint = _otlp_endpoint()
    span_exporter = OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces")

    tracer_provider = TracerProvider(resource=resource)
    tracer_provider.add_span_processor(BatchSpanProcessor(span_exporter))
    trace.set_tracer_provider(tracer_provider)

    logger.info(f"Exporting traces to {endpoint}")


def setup_metrics(resource: Resource) -> None:
    """Send metrics to the collector once a minute.

    Args:
        resource: Resource attached to every metric
    """
    endpoint = _otlp_endpoint()
    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics"),
        export_interval_millis=METRIC_EXPORT_INTERVAL_MS,
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[metric_reader]))

    logger.info(f"Exporting metrics to {endpoint}")


def setup_observability(app: Any = None, enable_exporters: bool = True) -> None:
    """Install telemetry providers and instrument outgoing and incoming HTTP.

    With ``ENVIRONMENT=test`` no exporter is created; bare SDK providers are
    installed so spans and instruments stay functional.

    Args:
        app: FastAPI application whose requests should be traced
        enable_exporters: Set False to keep telemetry in-process
    """
    if os.getenv("ENVIRONMENT", "development") == "test":
        enable_exporters = False

    resource = get_service_resource()

    if not enable_exporters:
        trace.set_tracer_provider(TracerProvider(resource=resource))
        metrics.set_meter_provider(MeterProvider(resource=resource))
        logger.info("Telemetry exporters disabled")
    else:
        setup_tracing(resource)
        setup_metrics(resource)

    # RestDataStore talks to the hosted backend through httpx
    HTTPXClientInstrumentor().instrument()

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("Incoming requests are traced")


class TraceContextFilter(logging.Filter):
    """Adds the current trace and span ids to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        if context.is_valid:
            record.trace_id = format(context.trace_id, "032x")
            record.span_id = format(context.span_id, "016x")
        else:
            record.trace_id = None
            record.span_id = None
        return True


def configure_logging(log_level: str = "INFO") -> None:
    """Replace root logging handlers with one JSON handler on stderr.

    Records carry ``trace_id`` and ``span_id`` so logs can be joined with
    traces. ``LOG_LEVEL`` in the environment overrides ``log_level``.

    Args:
        log_level: Level name such as DEBUG or INFO
    """
    level_name = os.getenv("LOG_LEVEL", log_level).upper()

    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT, timestamp=True))
    handler.addFilter(TraceContextFilter())

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))

    logger.info(f"JSON logging enabled at {level_name}")
