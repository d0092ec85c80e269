"""
Metrics

OpenTelemetry instruments for order creation and outbox dispatch.
`outbox_abandoned_total` is the alert signal for events that will not be
delivered without operator action.

Instruments exist only after init_metrics(); before that the record_*
helpers do nothing, so library code and tests can call them freely.
"""

import logging
from typing import Any, Dict, List, Mapping, NamedTuple, Optional

from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    MetricReader,
    PeriodicExportingMetricReader,
)
from opentelemetry.sdk.resources import SERVICE_NAME, Resource

logger = logging.getLogger(__name__)


class Instrument(NamedTuple):
    kind: str
    description: str
    unit: str


INSTRUMENTS: Dict[str, Instrument] = {
    "orders_created_total": Instrument("counter", "Orders created", "1"),
    "outbox_processed_total": Instrument("counter", "Outbox events published and marked processed", "1"),
    "outbox_failed_total": Instrument("counter", "Outbox publish attempts that failed", "1"),
    "outbox_abandoned_total": Instrument("counter", "Outbox events permanently failed", "1"),
    "outbox_requeued_total": Instrument("counter", "Failed outbox events moved back to pending", "1"),
    "outbox_batch_duration_seconds": Instrument("histogram", "Duration of one outbox dispatch batch", "s"),
}

_meter: Optional[metrics.Meter] = None
_instruments: Dict[str, Any] = {}


def _metric_readers(otlp_endpoint: Optional[str], console_export: bool, interval_ms: int) -> List[MetricReader]:
    readers: List[MetricReader] = []
    if otlp_endpoint:
        readers.append(PeriodicExportingMetricReader(
            OTLPMetricExporter(endpoint=otlp_endpoint, insecure=True),
            export_interval_millis=interval_ms,
        ))
        logger.info(f"Exporting metrics over OTLP to {otlp_endpoint}")
    if console_export:
        readers.append(PeriodicExportingMetricReader(ConsoleMetricExporter(), export_interval_millis=interval_ms))
        logger.info("Exporting metrics to the console")
    return readers


def init_metrics(
    service_name: str = "order-outbox",
    otlp_endpoint: Optional[str] = None,
    console_export: bool = False,
    export_interval_ms: int = 60000
) -> metrics.Meter:
    """Install a meter provider and create every instrument in INSTRUMENTS."""
    global _meter

    metrics.set_meter_provider(MeterProvider(
        resource=Resource.create({SERVICE_NAME: service_name}),
        metric_readers=_metric_readers(otlp_endpoint, console_export, export_interval_ms),
    ))
    _meter = metrics.get_meter(service_name)

    for name, spec in INSTRUMENTS.items():
        create = _meter.create_counter if spec.kind == "counter" else _meter.create_histogram
        _instruments[name] = create(name, unit=spec.unit, description=spec.description)

    logger.info(f"Metrics initialized for {service_name}: {len(_instruments)} instruments")
    return _meter


def get_meter() -> metrics.Meter:
    global _meter
    if _meter is None:
        _meter = metrics.get_meter("order-outbox")
    return _meter


def record_counter(name: str, value: int = 1, attributes: Optional[Mapping[str, Any]] = None) -> None:
    counter = _instruments.get(name)
    if counter is not None:
        counter.add(value, dict(attributes or {}))


def record_histogram(name: str, value: float, attributes: Optional[Mapping[str, Any]] = None) -> None:
    histogram = _instruments.get(name)
    if histogram is not None:
        histogram.record(value, dict(attributes or {}))
