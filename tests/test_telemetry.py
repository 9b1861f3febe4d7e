"""Tests for telemetry bootstrap helpers."""

from __future__ import annotations

from opentelemetry import trace
from opentelemetry.sdk.trace.sampling import ALWAYS_OFF, ParentBased

from utils import telemetry


def test_setup_tracing_skips_without_exporter(monkeypatch) -> None:
    """No collector endpoint and no console flag means tracing is not initialised."""

    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
    monkeypatch.delenv("WIZARD_TRACE_CONSOLE", raising=False)
    monkeypatch.setenv("OTEL_TRACES_ENABLED", "1")
    monkeypatch.setattr(telemetry, "_INITIALISED", False)

    calls: list[object] = []
    monkeypatch.setattr(trace, "set_tracer_provider", calls.append)

    assert telemetry.setup_tracing(force=True) is False
    assert calls == []


def test_console_flag_installs_provider(monkeypatch) -> None:
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
    monkeypatch.setenv("WIZARD_TRACE_CONSOLE", "yes")
    monkeypatch.setenv("OTEL_TRACES_ENABLED", "1")
    monkeypatch.setattr(telemetry, "_INITIALISED", False)

    calls: list[object] = []
    monkeypatch.setattr(trace, "set_tracer_provider", calls.append)

    assert telemetry.setup_tracing() is True
    assert len(calls) == 1
    assert telemetry.setup_tracing() is False


def test_disabled_flag_wins(monkeypatch) -> None:
    monkeypatch.setenv("OTEL_TRACES_ENABLED", "off")
    monkeypatch.setenv("WIZARD_TRACE_CONSOLE", "1")
    monkeypatch.setattr(telemetry, "_INITIALISED", False)

    assert telemetry.setup_tracing(force=True) is False


def test_otlp_config_parsing(monkeypatch) -> None:
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://collector:4318/v1/traces")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_HEADERS", "api-key=abc, broken, =x ,tenant=forms")
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_TIMEOUT", "2.5")

    otlp = telemetry._build_otlp_config()

    assert otlp is not None
    assert otlp.headers == {"api-key": "abc", "tenant": "forms"}
    assert otlp.timeout == 2


def test_sampler_selection(monkeypatch) -> None:
    monkeypatch.setenv("OTEL_TRACES_SAMPLER", "always_off")
    assert telemetry._build_sampler() is ALWAYS_OFF

    monkeypatch.setenv("OTEL_TRACES_SAMPLER", "something-else")
    assert isinstance(telemetry._build_sampler(), ParentBased)

    assert telemetry._coerce_ratio("7", default=0.5) == 1.0
    assert telemetry._coerce_ratio("nope", default=0.5) == 0.5
