"""Public telemetry helpers for the Salvo match engine."""

from __future__ import annotations

from .config import TelemetryConfig, init_telemetry, load_telemetry_config
from .logger import get_logger, init_logging
from .metrics import get_meter, init_metrics, record_match_metric
from .tracer import get_tracer, init_tracing, set_span_attributes

__all__ = [
    "TelemetryConfig",
    "get_logger",
    "get_tracer",
    "set_span_attributes",
    "get_meter",
    "record_match_metric",
    "init_logging",
    "init_tracing",
    "init_metrics",
    "load_telemetry_config",
    "init_telemetry",
]
