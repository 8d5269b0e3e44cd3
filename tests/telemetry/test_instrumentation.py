"""Telemetry instrumentation unit tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from salvo.config import MatchConfig
from salvo.engine.errors import InvalidPlacementError
from salvo.engine.instrumented_match import InstrumentedMatch
from salvo.engine.match import Match, MatchPhase
from salvo.engine.models import Item, Ship, Side
from salvo.engine.patterns import SQUARE_SHOT
from salvo.telemetry import config as telemetry_config_module
from salvo.telemetry import logger as logger_module
from salvo.telemetry import metrics as metrics_module
from salvo.telemetry import tracer as tracer_module
from salvo.telemetry.config import TelemetryConfig


class DummySpan:
    def __init__(self, names: list[str], span_name: str) -> None:
        self._names = names
        self._names.append(span_name)
        self.attributes: dict[str, object] = {}
        self.exceptions: list[BaseException] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def set_attribute(self, key, value):
        self.attributes[key] = value

    def record_exception(self, exc):
        self.exceptions.append(exc)


class DummyTracer:
    def __init__(self) -> None:
        self.span_names: list[str] = []

    def start_as_current_span(self, name: str):
        return DummySpan(self.span_names, name)


def reset_singletons() -> None:
    tracer_module._TRACERS.clear()
    tracer_module._TRACER_PROVIDER = None
    metrics_module._METER = None
    metrics_module._METER_PROVIDER = None
    metrics_module._INSTRUMENTS = {}
    logger_module._LOGGER = None


def test_lazy_init_tracer(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    assert tracer_module.get_tracer() is tracer_module.get_tracer()
    assert tracer_module.get_tracer("salvo.engine.board") is not tracer_module.get_tracer()

    provider_instance = MagicMock()
    provider_instance.get_tracer.return_value = MagicMock()
    monkeypatch.setattr(tracer_module, "TracerProvider", MagicMock(return_value=provider_instance))
    monkeypatch.setattr(tracer_module, "OTLPSpanExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(tracer_module.trace, "set_tracer_provider", MagicMock())
    tracer_module.init_tracing(
        TelemetryConfig(enable_tracing=True, otlp_traces_endpoint="http://example")
    )
    assert tracer_module._TRACER_PROVIDER is provider_instance
    assert tracer_module.get_tracer("salvo.engine.board") is provider_instance.get_tracer.return_value
    provider_instance.get_tracer.assert_any_call("salvo.engine.board")

    meter_provider = MagicMock()
    meter_provider.get_meter.return_value = MagicMock()
    monkeypatch.setattr(metrics_module, "MeterProvider", MagicMock(return_value=meter_provider))
    monkeypatch.setattr(metrics_module, "OTLPMetricExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(metrics_module, "PeriodicExportingMetricReader", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(metrics_module.otel_metrics, "set_meter_provider", MagicMock())
    metrics_module.init_metrics(
        TelemetryConfig(enable_metrics=True, otlp_metrics_endpoint="http://example")
    )
    assert metrics_module._METER is meter_provider.get_meter.return_value
    reset_singletons()


def test_record_match_metric_reuses_counters(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    meter = MagicMock()
    monkeypatch.setattr(metrics_module, "_METER", meter)

    metrics_module.record_match_metric("salvo_shots_total", 1, {"side": "player"})
    metrics_module.record_match_metric("salvo_shots_total", 2)

    meter.create_counter.assert_called_once_with("salvo_shots_total", unit="1", description="Executed pattern cells")
    counter = meter.create_counter.return_value
    counter.add.assert_any_call(1, attributes={"side": "player"})
    counter.add.assert_any_call(2, attributes={})
    reset_singletons()


def test_duration_is_recorded_on_a_histogram(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    meter = MagicMock()
    monkeypatch.setattr(metrics_module, "_METER", meter)

    metrics_module.record_match_metric("salvo_match_duration_seconds", 1.5, {"winner": "player"})

    meter.create_histogram.assert_called_once_with(
        "salvo_match_duration_seconds", unit="s", description="Wall time from initialize to game over"
    )
    meter.create_counter.assert_not_called()
    meter.create_histogram.return_value.record.assert_called_once_with(1.5, attributes={"winner": "player"})
    reset_singletons()


def test_unknown_metric_falls_back_to_counter(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_singletons()
    meter = MagicMock()
    monkeypatch.setattr(metrics_module, "_METER", meter)

    metrics_module.record_match_metric("salvo_custom_total", 3)

    meter.create_counter.assert_called_once_with("salvo_custom_total", unit="1", description="")
    meter.create_counter.return_value.add.assert_called_once_with(3, attributes={})
    reset_singletons()


def test_set_span_attributes_prefixes_and_unwraps() -> None:
    span = DummySpan([], "salvo.engine.shot")
    tracer_module.set_span_attributes(span, "shot", x=3, side=Side.ENEMY, outcome=None, hit=True)
    assert span.attributes == {"shot.x": 3, "shot.side": "enemy", "shot.hit": True}


def test_resource_carries_service_identity() -> None:
    config = TelemetryConfig(
        service_name="salvo-test",
        service_namespace="ci",
        resource_attributes={"deployment.environment": "test"},
    )
    attributes = config.resource().attributes
    assert attributes["service.name"] == "salvo-test"
    assert attributes["service.namespace"] == "ci"
    assert attributes["deployment.environment"] == "test"


def test_from_env_reads_metric_export_interval(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_METRIC_EXPORT_INTERVAL", " 2500 ")
    assert TelemetryConfig.from_env().metrics_export_interval_ms == 2500

    monkeypatch.delenv("OTEL_METRIC_EXPORT_INTERVAL")
    assert TelemetryConfig.from_env().metrics_export_interval_ms == 5000


def test_logging_init_noop() -> None:
    reset_singletons()
    logger = logger_module.get_logger("test")
    assert logger_module.init_logging(TelemetryConfig()) is logger


def test_init_telemetry_noop(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    monkeypatch.setattr(telemetry_config_module, "init_tracing", lambda cfg: calls.append("tr"))
    monkeypatch.setattr(telemetry_config_module, "init_metrics", lambda cfg: calls.append("me"))
    monkeypatch.setattr(telemetry_config_module, "init_logging", lambda cfg: calls.append("lo"))

    telemetry_config_module.init_telemetry(TelemetryConfig())
    assert calls == []


def test_init_telemetry_respects_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []

    monkeypatch.setattr(telemetry_config_module, "init_tracing", lambda cfg: calls.append("tr"))
    monkeypatch.setattr(telemetry_config_module, "init_metrics", lambda cfg: calls.append("me"))
    monkeypatch.setattr(telemetry_config_module, "init_logging", lambda cfg: calls.append("lo"))

    config = TelemetryConfig(enable_tracing=True, enable_logging=True)
    telemetry_config_module.init_telemetry(config)
    assert calls == ["tr", "lo"]


def test_from_env_endpoints_enable_exporters(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SALVO_ENABLE_TRACING",
        "SALVO_ENABLE_METRICS",
        "SALVO_ENABLE_LOGGING",
        "OTEL_TRACES_ENABLED",
        "OTEL_METRICS_ENABLED",
        "OTEL_LOGS_ENABLED",
        "OTEL_EXPORTER_OTLP_TRACES_ENDPOINT",
        "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT",
        "OTEL_EXPORTER_OTLP_LOGS_ENDPOINT",
        "OTEL_SERVICE_NAME",
        "OTEL_SERVICE_NAMESPACE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4317/")
    monkeypatch.setenv("OTEL_RESOURCE_ATTRIBUTES", "deployment.environment=test,broken")

    config = TelemetryConfig.from_env()
    assert config.otlp_traces_endpoint == "http://collector:4317/v1/traces"
    assert config.enable_tracing and config.enable_metrics and config.enable_logging
    assert config.resource_attributes == {"deployment.environment": "test"}
    assert config.service_name == "salvo"


def test_load_telemetry_config_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    telemetry_config_module.load_telemetry_config.cache_clear()

    calls = {"count": 0}

    def fake_from_env(**overrides):
        calls["count"] += 1
        return TelemetryConfig(enable_tracing=True)

    monkeypatch.setattr(
        telemetry_config_module.TelemetryConfig,
        "from_env",
        classmethod(lambda cls, **overrides: fake_from_env(**overrides)),
    )

    first = telemetry_config_module.load_telemetry_config()
    second = telemetry_config_module.load_telemetry_config()
    assert first is second
    assert calls["count"] == 1
    telemetry_config_module.load_telemetry_config.cache_clear()


def _instrumented(monkeypatch: pytest.MonkeyPatch) -> tuple[InstrumentedMatch, DummyTracer, list]:
    tracer = DummyTracer()
    metrics_calls: list[tuple[str, float, dict | None]] = []
    logger = MagicMock()

    monkeypatch.setattr("salvo.engine.instrumented_match.get_tracer", lambda *_: tracer)
    monkeypatch.setattr("salvo.engine.instrumented_match.get_logger", lambda *_: logger)
    monkeypatch.setattr(
        "salvo.engine.instrumented_match.record_match_metric",
        lambda name, value, attrs=None: metrics_calls.append((name, value, attrs)),
    )
    match = InstrumentedMatch(MatchConfig(board_width=10, board_height=10))
    return match, tracer, metrics_calls


def test_instrumented_match_emits_spans(monkeypatch: pytest.MonkeyPatch) -> None:
    match, tracer, metrics_calls = _instrumented(monkeypatch)

    match.initialize([Ship(0, 0)], [Ship(5, 5, width=2)], enemy_items=[Item(0, 9)])
    assert "salvo.engine.match" in tracer.span_names

    tracer.span_names.clear()
    metrics_calls.clear()
    match.plan_and_attack(0, 9)
    assert "salvo.engine.attack" in tracer.span_names
    metric_names = [name for name, _, _ in metrics_calls]
    assert "salvo_attacks_total" in metric_names
    assert "salvo_shots_total" in metric_names
    assert ("salvo_shots_by_result_total", 1, {"side": "player", "result": "collected"}) in metrics_calls
    assert "salvo_items_collected_total" in metric_names
    assert "salvo_match_completed_total" not in metric_names

    tracer.span_names.clear()
    metrics_calls.clear()
    result = match.plan_and_attack(5, 5, pattern=SQUARE_SHOT)
    assert result.is_game_over
    assert "salvo.engine.match_complete" in tracer.span_names
    metric_names = [name for name, _, _ in metrics_calls]
    assert "salvo_match_completed_total" in metric_names
    assert "salvo_match_duration_seconds" in metric_names
    assert ("salvo_shots_total", 9, {"side": "player"}) in metrics_calls
    assert match._match_span is None


def test_instrumented_match_records_rejections(monkeypatch: pytest.MonkeyPatch) -> None:
    match, tracer, metrics_calls = _instrumented(monkeypatch)
    match.initialize([Ship(0, 0)], [Ship(5, 5)])
    metrics_calls.clear()

    assert not match.plan_shot(10, 10).ready
    assert not match.confirm_attack().success
    metric_names = [name for name, _, _ in metrics_calls]
    assert metric_names == ["salvo_plans_rejected_total", "salvo_attacks_failed_total"]
    assert match.phase is MatchPhase.PLANNING


def test_instrumented_match_closes_span_on_bad_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    match, tracer, metrics_calls = _instrumented(monkeypatch)

    with pytest.raises(InvalidPlacementError):
        match.initialize([Ship(9, 9, width=2)], [Ship(0, 0)])
    assert match._match_span is None
    assert [name for name, _, _ in metrics_calls] == ["salvo_invalid_placements_total"]


def test_instrumented_match_behaves_like_match(monkeypatch: pytest.MonkeyPatch) -> None:
    match, _, _ = _instrumented(monkeypatch)
    plain = Match(MatchConfig(board_width=10, board_height=10))
    for candidate in (match, plain):
        candidate.initialize([Ship(0, 0)], [Ship(5, 5, width=2)])

    for x, y in ((5, 5), (1, 1), (6, 5)):
        expected = plain.plan_and_attack(x, y)
        actual = match.plan_and_attack(x, y)
        assert actual == expected
    assert match.current_turn is plain.current_turn
    assert match.winner is plain.winner is Side.PLAYER


def test_rejected_setup_keeps_running_match_span(monkeypatch: pytest.MonkeyPatch) -> None:
    match, tracer, metrics_calls = _instrumented(monkeypatch)
    match.initialize([Ship(0, 0)], [Ship(5, 5, width=2)])
    match.plan_and_attack(5, 5)
    live_span = match._match_span
    metrics_calls.clear()

    with pytest.raises(InvalidPlacementError):
        match.initialize([Ship(9, 9, width=2)], [Ship(0, 0)])

    assert match._match_span is live_span
    assert live_span.attributes == {"match.id": 1, "ruleset": match.ruleset.name, "starting_side": "player"}
    assert not live_span.exceptions
    assert tracer.span_names.count("salvo.engine.match") == 1
    assert "salvo.engine.setup_rejected" in tracer.span_names
    assert [name for name, _, _ in metrics_calls] == ["salvo_invalid_placements_total"]
    assert match.board.ship_hit_count(Side.ENEMY, 0) == 1
    assert match.phase is not MatchPhase.IDLE
