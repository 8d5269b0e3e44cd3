"""Tracing helpers for the match engine.

Engine modules grab a named tracer at import time and open spans through the
OpenTelemetry API. Until :func:`init_tracing` installs an SDK provider those
spans are no-ops, so the engine runs untraced by default.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Union

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.trace import Span, Tracer

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .config import TelemetryConfig

SpanValue = Union[str, bool, int, float, Enum, None]

_TRACERS: dict[str, Tracer] = {}
_TRACER_PROVIDER: TracerProvider | None = None


def get_tracer(name: str = "salvo") -> Tracer:
    """Return the tracer for ``name``, bound to the installed provider if any."""
    tracer = _TRACERS.get(name)
    if tracer is None:
        if _TRACER_PROVIDER is not None:
            tracer = _TRACER_PROVIDER.get_tracer(name)
        else:
            tracer = trace.get_tracer(name)
        _TRACERS[name] = tracer
    return tracer


def set_span_attributes(span: Span, prefix: str, **attributes: SpanValue) -> None:
    """Set ``prefix.key`` attributes, unwrapping enums and skipping ``None``."""
    for key, value in attributes.items():
        if value is None:
            continue
        if isinstance(value, Enum):
            value = value.value
        span.set_attribute(f"{prefix}.{key}", value)


def init_tracing(config: TelemetryConfig) -> Tracer:
    """Install an SDK provider exporting over OTLP, or to stdout without an endpoint."""
    global _TRACER_PROVIDER

    provider = TracerProvider(resource=config.resource())
    provider.add_span_processor(_span_processor(config))
    trace.set_tracer_provider(provider)

    _TRACER_PROVIDER = provider
    _TRACERS.clear()
    return get_tracer(config.service_name)


def _span_processor(config: TelemetryConfig) -> SpanProcessor:
    if config.otlp_traces_endpoint:
        return BatchSpanProcessor(OTLPSpanExporter(endpoint=config.otlp_traces_endpoint, insecure=True))
    return SimpleSpanProcessor(ConsoleSpanExporter(service_name=config.service_name))
