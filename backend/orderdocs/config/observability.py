"""
OpenTelemetry tracing and Prometheus metrics for the document pipeline.
"""

import logging
from typing import Optional

import structlog
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from prometheus_client import Counter, Histogram


logger = logging.getLogger(__name__)

DOCUMENT_GENERATION_TOTAL = Counter(
    "document_generation_total",
    "Document generation attempts by type and outcome",
    ["document_type", "status"],
)
DOCUMENT_GENERATION_DURATION = Histogram(
    "document_generation_duration_seconds",
    "Render plus upload duration in seconds",
    ["document_type"],
)
STORAGE_REQUESTS_TOTAL = Counter(
    "storage_requests_total",
    "Object storage requests by operation and outcome",
    ["operation", "outcome"],
)
WEBHOOK_EVENTS_TOTAL = Counter(
    "webhook_events_total",
    "Inbound webhook events by type and final status",
    ["event_type", "status"],
)


def configure_tracing(service_name: str = "orderdocs", environment: str = "development") -> None:
    """Configure OpenTelemetry distributed tracing."""
    resource = Resource.create({
        "service.name": service_name,
        "service.version": "1.0.0",
        "environment": environment,
    })
    tracer_provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(tracer_provider)

    # Console exporter for development only
    if environment == "development":
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    logger.info("Tracing configured for %s (%s)", service_name, environment)


def get_tracer(name: str) -> trace.Tracer:
    """Get OpenTelemetry tracer for manual instrumentation."""
    return trace.get_tracer(name)


class trace_operation:
    """Context manager for tracing business operations with structured logging."""

    def __init__(self, operation_name: str, **attributes):
        self.operation_name = operation_name
        self.attributes = {k: v for k, v in attributes.items() if v is not None}
        self.tracer = get_tracer(__name__)
        self.logger = structlog.get_logger("orderdocs.operations")
        self.span: Optional[trace.Span] = None

    def __enter__(self):
        self.span = self.tracer.start_span(
            self.operation_name,
            attributes={k: str(v) for k, v in self.attributes.items()},
        )
        self.logger.debug(
            "Operation started",
            operation=self.operation_name,
            **self.attributes
        )
        return self.span

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.logger.error(
                "Operation failed",
                operation=self.operation_name,
                error_type=exc_type.__name__,
                error_message=str(exc_val),
                **self.attributes
            )
            if self.span:
                self.span.record_exception(exc_val)
                self.span.set_status(trace.Status(
                    trace.StatusCode.ERROR, str(exc_val)))
        else:
            self.logger.debug(
                "Operation completed",
                operation=self.operation_name,
                **self.attributes
            )
            if self.span:
                self.span.set_status(trace.Status(trace.StatusCode.OK))

        if self.span:
            self.span.end()
        return False


def record_generation(document_type: str, status: str, duration_s: Optional[float] = None) -> None:
    DOCUMENT_GENERATION_TOTAL.labels(document_type, status).inc()
    if duration_s is not None:
        DOCUMENT_GENERATION_DURATION.labels(document_type).observe(duration_s)


__all__ = [
    "configure_tracing",
    "get_tracer",
    "trace_operation",
    "record_generation",
    "DOCUMENT_GENERATION_TOTAL",
    "DOCUMENT_GENERATION_DURATION",
    "STORAGE_REQUESTS_TOTAL",
    "WEBHOOK_EVENTS_TOTAL",
]
