"""
Tracing

OpenTelemetry spans around outbox batches and publishes. The active trace
context travels to consumers in the Kafka `traceparent` header and is
stamped onto every structured log line.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.propagate import inject, set_global_textmap
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Span
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "order-outbox"

_tracer: Optional[trace.Tracer] = None


def _span_processors(otlp_endpoint: Optional[str], console_export: bool) -> List[SpanProcessor]:
    processors: List[SpanProcessor] = []
    if otlp_endpoint:
        processors.append(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)))
        logger.info(f"Exporting spans over OTLP to {otlp_endpoint}")
    if console_export:
        processors.append(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("Exporting spans to the console")
    return processors


def init_tracing(
    service_name: str = DEFAULT_SERVICE_NAME,
    service_version: str = "0.1.0",
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False
) -> trace.Tracer:
    """
    Install a tracer provider for the process.

    Without an endpoint or console export spans are still created (and
    trace ids still reach the logs) but nothing is exported.
    """
    global _tracer

    provider = TracerProvider(resource=Resource.create({
        SERVICE_NAME: service_name,
        SERVICE_VERSION: service_version,
    }))
    for processor in _span_processors(otlp_endpoint, console_export):
        provider.add_span_processor(processor)

    trace.set_tracer_provider(provider)
    set_global_textmap(TraceContextTextMapPropagator())

    _tracer = trace.get_tracer(service_name, service_version)
    logger.info(f"Tracing initialized for {service_name} {service_version}")
    return _tracer


def get_tracer() -> trace.Tracer:
    """Tracer from init_tracing(), or the API default (no-op until a provider is set)."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(DEFAULT_SERVICE_NAME)
    return _tracer


def get_current_span() -> Span:
    return trace.get_current_span()


def current_span_ids() -> Tuple[Optional[str], Optional[str]]:
    """(trace_id, span_id) of the active span as hex, or (None, None)."""
    context = get_current_span().get_span_context()
    if not context.is_valid:
        return None, None
    return format(context.trace_id, "032x"), format(context.span_id, "016x")


def get_trace_id() -> Optional[str]:
    return current_span_ids()[0]


@contextmanager
def create_span(
    name: str,
    attributes: Optional[Mapping[str, Any]] = None,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL
) -> Iterator[Span]:
    """
    Run a block inside a new child span.

    None-valued attributes are dropped. An exception escaping the block is
    recorded on the span and marks it as an error.

    Usage:
        with create_span("outbox.publish", {"messaging.destination": topic}) as span:
            ...
    """
    clean = {key: value for key, value in (attributes or {}).items() if value is not None}
    with get_tracer().start_as_current_span(
        name,
        kind=kind,
        attributes=clean,
        record_exception=True,
        set_status_on_exception=True,
    ) as span:
        yield span


def inject_trace_context(carrier: Dict[str, str]) -> Dict[str, str]:
    """Write the active context (traceparent) into carrier and return it."""
    inject(carrier)
    return carrier


def add_event_to_span(name: str, attributes: Optional[Mapping[str, Any]] = None) -> None:
    """Attach an event to the active span if it is recording."""
    span = get_current_span()
    if span.is_recording():
        span.add_event(name, dict(attributes or {}))
