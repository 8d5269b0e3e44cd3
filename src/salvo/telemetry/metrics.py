"""Metric instruments recorded by the match engine.

Every instrument is declared once in :data:`INSTRUMENTS` with its kind, unit
and description, and created lazily on the current meter the first time it
is recorded. :func:`init_metrics` drops the cache so instruments are rebuilt
on the freshly installed provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping, Union

from opentelemetry import metrics as otel_metrics
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import Counter, Histogram, Meter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader

if TYPE_CHECKING:  # pragma: no cover
    from .config import TelemetryConfig

MetricAttributes = Mapping[str, Union[str, bool, int, float]]
Instrument = Union[Counter, Histogram]

COUNTER = "counter"
HISTOGRAM = "histogram"


@dataclass(frozen=True)
class InstrumentSpec:
    kind: str
    unit: str
    description: str


INSTRUMENTS: dict[str, InstrumentSpec] = {
    # Engine internals, recorded by BoardState and Match.
    "salvo_engine_shots": InstrumentSpec(COUNTER, "1", "Cells resolved against a board"),
    "salvo_engine_plans": InstrumentSpec(COUNTER, "1", "Shot plans submitted to a match"),
    "salvo_engine_attacks": InstrumentSpec(COUNTER, "1", "Confirmed attacks"),
    # Match-level, recorded by InstrumentedMatch.
    "salvo_match_started_total": InstrumentSpec(COUNTER, "1", "Matches initialized"),
    "salvo_invalid_placements_total": InstrumentSpec(COUNTER, "1", "Setups rejected for bad placements"),
    "salvo_plans_rejected_total": InstrumentSpec(COUNTER, "1", "Plans rejected by validation"),
    "salvo_attacks_total": InstrumentSpec(COUNTER, "1", "Attacks that resolved"),
    "salvo_attacks_failed_total": InstrumentSpec(COUNTER, "1", "Confirmations that returned an error"),
    "salvo_shots_total": InstrumentSpec(COUNTER, "1", "Executed pattern cells"),
    "salvo_shots_by_result_total": InstrumentSpec(COUNTER, "1", "Executed cells by hit, miss or collected"),
    "salvo_items_collected_total": InstrumentSpec(COUNTER, "1", "Item parts collected"),
    "salvo_match_completed_total": InstrumentSpec(COUNTER, "1", "Matches that reached game over"),
    "salvo_match_duration_seconds": InstrumentSpec(HISTOGRAM, "s", "Wall time from initialize to game over"),
}

_METER_PROVIDER: MeterProvider | None = None
_METER: Meter | None = None
_INSTRUMENTS: dict[str, Instrument] = {}


def get_meter(name: str = "salvo") -> Meter:
    global _METER
    if _METER is None:
        _METER = otel_metrics.get_meter(name)
    return _METER


def init_metrics(config: TelemetryConfig) -> Meter:
    global _METER_PROVIDER, _METER, _INSTRUMENTS

    readers = []
    if config.otlp_metrics_endpoint:
        exporter = OTLPMetricExporter(endpoint=config.otlp_metrics_endpoint, insecure=True)
        readers.append(
            PeriodicExportingMetricReader(exporter, export_interval_millis=config.metrics_export_interval_ms)
        )

    provider = MeterProvider(resource=config.resource(), metric_readers=readers)
    otel_metrics.set_meter_provider(provider)

    _METER_PROVIDER = provider
    _METER = provider.get_meter(config.service_name)
    _INSTRUMENTS = {}
    return _METER


def instrument(name: str) -> Instrument:
    """Return the instrument registered as ``name``; unknown names become counters."""
    existing = _INSTRUMENTS.get(name)
    if existing is not None:
        return existing
    spec = INSTRUMENTS.get(name, InstrumentSpec(COUNTER, "1", ""))
    meter = get_meter()
    if spec.kind == HISTOGRAM:
        created: Instrument = meter.create_histogram(name, unit=spec.unit, description=spec.description)
    else:
        created = meter.create_counter(name, unit=spec.unit, description=spec.description)
    _INSTRUMENTS[name] = created
    return created


def record_match_metric(name: str, value: float, attrs: MetricAttributes | None = None) -> None:
    """Add ``value`` to a counter or record it on a histogram, per the catalog."""
    target = instrument(name)
    attributes = dict(attrs or {})
    spec = INSTRUMENTS.get(name)
    if spec is not None and spec.kind == HISTOGRAM:
        target.record(value, attributes=attributes)
    else:
        target.add(value, attributes=attributes)
