"""
Observability Module

Tracing, metrics and structured logging on OpenTelemetry.
"""

from .tracing import (
    init_tracing,
    get_tracer,
    get_current_span,
    get_trace_id,
    current_span_ids,
    create_span,
    inject_trace_context,
    add_event_to_span,
)
from .metrics import (
    init_metrics,
    INSTRUMENTS,
    get_meter,
    record_counter,
    record_histogram,
)
from .logging import PLAIN_FORMAT, StructuredFormatter, TraceContextFilter, configure_logging

__all__ = [
    # Tracing
    "init_tracing",
    "get_tracer",
    "get_current_span",
    "get_trace_id",
    "current_span_ids",
    "create_span",
    "inject_trace_context",
    "add_event_to_span",
    # Metrics
    "init_metrics",
    "INSTRUMENTS",
    "get_meter",
    "record_counter",
    "record_histogram",
    # Logging
    "PLAIN_FORMAT",
    "StructuredFormatter",
    "TraceContextFilter",
    "configure_logging",
]
