"""Telemetry instrumentation unit tests."""

from __future__ import annotations

from typing import Iterator
from unittest.mock import MagicMock

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from seabattle.engine.instrumented_match import InstrumentedMatchController
from seabattle.engine.match import Side
from seabattle.settings import GameSettings
from seabattle.telemetry import config as telemetry_config_module
from seabattle.telemetry import logger as logger_module
from seabattle.telemetry import metrics as metrics_module
from seabattle.telemetry import tracer as tracer_module
from seabattle.telemetry.config import TelemetryConfig


class DummySpan:
    def __init__(self, names: list[str], span_name: str) -> None:
        self._names = names
        self._names.append(span_name)
        self.attributes: dict[str, object] = {}

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def set_attribute(self, key, value):
        self.attributes[key] = value


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


@pytest.fixture(autouse=True)
def clean_singletons() -> Iterator[None]:
    reset_singletons()
    yield
    reset_singletons()


def test_get_tracer_is_cached_per_name() -> None:
    assert tracer_module.get_tracer() is tracer_module.get_tracer()
    assert tracer_module.get_tracer("a") is tracer_module.get_tracer("a")


def test_init_tracing_installs_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    provider_instance = MagicMock()
    provider_instance.get_tracer.return_value = MagicMock()
    monkeypatch.setattr(tracer_module, "TracerProvider", MagicMock(return_value=provider_instance))
    monkeypatch.setattr(tracer_module, "OTLPSpanExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(tracer_module, "BatchSpanProcessor", MagicMock())
    set_provider = MagicMock()
    monkeypatch.setattr(tracer_module.trace, "set_tracer_provider", set_provider)

    tracer = tracer_module.init_tracing(
        TelemetryConfig(enable_tracing=True, otlp_traces_endpoint="http://example")
    )

    assert tracer is provider_instance.get_tracer.return_value
    assert tracer_module.get_tracer("seabattle") is tracer
    set_provider.assert_called_once_with(provider_instance)
    provider_instance.add_span_processor.assert_called_once()


def test_init_metrics_installs_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    meter_provider = MagicMock()
    meter_provider.get_meter.return_value = MagicMock()
    monkeypatch.setattr(metrics_module, "MeterProvider", MagicMock(return_value=meter_provider))
    monkeypatch.setattr(metrics_module, "OTLPMetricExporter", MagicMock(return_value=MagicMock()))
    monkeypatch.setattr(metrics_module, "PeriodicExportingMetricReader", MagicMock())
    monkeypatch.setattr(metrics_module.otel_metrics, "set_meter_provider", MagicMock())

    metrics_module.init_metrics(
        TelemetryConfig(enable_metrics=True, otlp_metrics_endpoint="http://example")
    )

    assert metrics_module._METER is meter_provider.get_meter.return_value
    counter = metrics_module.get_counter("seabattle_test_total")
    assert metrics_module.get_counter("seabattle_test_total") is counter
    metrics_module.record_game_metric("seabattle_test_total", 2, {"side": "player"})
    counter.add.assert_called_once_with(2, attributes={"side": "player"})


def test_logging_init_without_endpoint_returns_package_logger() -> None:
    logger = logger_module.init_logging(TelemetryConfig())
    assert logger is logger_module.get_logger("seabattle")


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


def test_from_env_endpoint_enables_signal(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT", "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4317/")
    monkeypatch.setenv("OTEL_RESOURCE_ATTRIBUTES", "deployment=test,broken")
    monkeypatch.setenv("SEABATTLE_LOG_LEVEL", "debug")

    config = TelemetryConfig.from_env(otlp_logs_endpoint=None)

    assert config.otlp_traces_endpoint == "http://collector:4317/v1/traces"
    assert config.otlp_metrics_endpoint == "http://collector:4317/v1/metrics"
    assert config.otlp_logs_endpoint is None
    assert config.enable_tracing and config.enable_metrics
    assert config.resource_attributes == {"deployment": "test"}
    assert config.log_level == "DEBUG"


def test_load_telemetry_config_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    telemetry_config_module.load_telemetry_config.cache_clear()
    calls = {"count": 0}

    def fake_from_env(cls, **overrides):
        calls["count"] += 1
        return TelemetryConfig(enable_tracing=True)

    monkeypatch.setattr(TelemetryConfig, "from_env", classmethod(fake_from_env))

    first = telemetry_config_module.load_telemetry_config()
    second = telemetry_config_module.load_telemetry_config()
    assert first is second
    assert calls["count"] == 1
    telemetry_config_module.load_telemetry_config.cache_clear()


def test_instrumented_match_emits_spans(monkeypatch: pytest.MonkeyPatch) -> None:
    tracer = DummyTracer()
    metrics_calls: list[tuple[str, float, dict | None]] = []
    logger = MagicMock()

    monkeypatch.setattr("seabattle.engine.instrumented_match.get_tracer", lambda *_: tracer)
    monkeypatch.setattr("seabattle.engine.instrumented_match.get_logger", lambda *_: logger)
    monkeypatch.setattr(
        "seabattle.engine.instrumented_match.record_game_metric",
        lambda name, value, attrs=None: metrics_calls.append((name, value, attrs)),
    )

    match = InstrumentedMatchController(GameSettings(grid_size=6, ship_set=(2,)), rng_seed=0)
    assert "seabattle.match" in tracer.span_names
    assert "seabattle.match.reset" in tracer.span_names

    match.open_new_game()
    match.choose_random_placement()
    tracer.span_names.clear()
    metrics_calls.clear()

    for coord in match.opponent_board.ships[0].coordinates():
        match.player_fire(coord.x, coord.y)

    assert match.winner is not None
    assert "seabattle.match.turn" in tracer.span_names
    metric_names = {name for name, _, _ in metrics_calls}
    assert "seabattle_shots_by_result_total" in metric_names
    assert "seabattle_match_completed_total" in metric_names
    logger.info.assert_called()


def test_instrumented_match_counts_rejected_shots(monkeypatch: pytest.MonkeyPatch) -> None:
    metric_names: list[str] = []
    monkeypatch.setattr("seabattle.engine.instrumented_match.get_tracer", lambda *_: DummyTracer())
    monkeypatch.setattr(
        "seabattle.engine.instrumented_match.record_game_metric",
        lambda name, value, attrs=None: metric_names.append(name),
    )

    match = InstrumentedMatchController(GameSettings(grid_size=6, ship_set=(2,)), rng_seed=0)
    report = match.player_fire(0, 0)

    assert not report.accepted
    assert "seabattle_rejected_shots_total" in metric_names


def test_match_span_unwinds_after_the_winning_turn(monkeypatch: pytest.MonkeyPatch) -> None:
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr(
        "seabattle.engine.instrumented_match.get_tracer", lambda *_: provider.get_tracer("test")
    )

    match = InstrumentedMatchController(GameSettings(grid_size=6, ship_set=(2,)), rng_seed=0)
    match.open_new_game()
    match.choose_random_placement()
    for coord in match.opponent_board.ships[0].coordinates():
        match.player_fire(coord.x, coord.y)

    assert match.winner is Side.PLAYER
    assert not trace.get_current_span().get_span_context().is_valid

    finished = exporter.get_finished_spans()
    match_span = finished[-1]
    assert match_span.name == "seabattle.match"
    turns = [span for span in finished if span.name == "seabattle.match.turn"]
    assert len(turns) == 2
    assert all(span.parent.span_id == match_span.context.span_id for span in turns)

    match.reset()
    try:
        assert trace.get_current_span().parent is None
    finally:
        match._close_match_span()
