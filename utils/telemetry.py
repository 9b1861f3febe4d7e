"""OpenTelemetry bootstrap for wizard transition spans.

The engine always creates spans through ``trace.get_tracer``; they are only
exported once :func:`setup_tracing` installs a provider. Settings come from
the standard ``OTEL_*`` variables plus ``WIZARD_TRACE_CONSOLE`` for local
debugging.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.sdk.trace.sampling import (
    ALWAYS_OFF,
    ALWAYS_ON,
    ParentBased,
    Sampler,
    TraceIdRatioBased,
)

LOGGER = logging.getLogger("multistep_forms.telemetry")

DEFAULT_SERVICE_NAME = "multistep-forms"
_FLAG_ON = {"1", "true", "yes", "on"}
_FLAG_OFF = {"0", "false", "no", "off"}

_INITIALISED = False


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _parse_headers(raw: str | None) -> Dict[str, str]:
    """Turn ``"k1=v1,k2=v2"`` into a dict, skipping malformed pairs."""

    pairs = (fragment.split("=", 1) for fragment in (raw or "").split(",") if "=" in fragment)
    return {key.strip(): value.strip() for key, value in pairs if key.strip()}


def _coerce_ratio(raw: str, *, default: float) -> float:
    """Clamp a sampler ratio into ``[0.0, 1.0]``."""

    if not raw:
        return default
    try:
        return max(0.0, min(1.0, float(raw)))
    except ValueError:
        LOGGER.warning("Invalid OTEL_TRACES_SAMPLER_ARG '%s'; using %.2f", raw, default)
        return default


@dataclass(frozen=True)
class OtlpConfig:
    """Connection settings for the OTLP HTTP span exporter."""

    endpoint: str
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[int] = None
    certificate_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "OtlpConfig | None":
        endpoint = _env("OTEL_EXPORTER_OTLP_ENDPOINT")
        if not endpoint:
            return None
        timeout_raw = _env("OTEL_EXPORTER_OTLP_TIMEOUT")
        timeout: Optional[int] = None
        if timeout_raw:
            try:
                timeout = int(float(timeout_raw))
            except ValueError:
                LOGGER.warning("Ignoring invalid OTEL_EXPORTER_OTLP_TIMEOUT '%s'", timeout_raw)
        return cls(
            endpoint=endpoint,
            headers=_parse_headers(os.getenv("OTEL_EXPORTER_OTLP_HEADERS")),
            timeout=timeout,
            certificate_file=_env("OTEL_EXPORTER_OTLP_CERTIFICATE") or None,
        )

    def create_exporter(self) -> SpanExporter:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

        return OTLPSpanExporter(
            endpoint=self.endpoint,
            headers=self.headers or None,
            timeout=self.timeout,
            certificate_file=self.certificate_file,
        )


def _build_otlp_config() -> OtlpConfig | None:
    return OtlpConfig.from_env()


def _build_sampler() -> Sampler:
    """Map ``OTEL_TRACES_SAMPLER`` onto an SDK sampler."""

    name = _env("OTEL_TRACES_SAMPLER").lower()
    ratio = _coerce_ratio(_env("OTEL_TRACES_SAMPLER_ARG"), default=1.0)
    samplers: Dict[str, Sampler] = {
        "": ParentBased(TraceIdRatioBased(ratio)),
        "parentbased_traceidratio": ParentBased(TraceIdRatioBased(ratio)),
        "traceidratio": TraceIdRatioBased(ratio),
        "always_on": ALWAYS_ON,
        "always_off": ALWAYS_OFF,
    }
    if name in samplers:
        return samplers[name]
    LOGGER.warning("Unknown OTEL_TRACES_SAMPLER '%s'; falling back to parentbased_traceidratio", name)
    return ParentBased(TraceIdRatioBased(1.0))


def setup_tracing(*, force: bool = False) -> bool:
    """Install a global tracer provider for wizard spans.

    Nothing is installed when ``OTEL_TRACES_ENABLED`` is off or when neither
    an OTLP endpoint nor ``WIZARD_TRACE_CONSOLE`` is configured. Returns
    ``True`` only when this call installed a provider.
    """

    global _INITIALISED
    if _INITIALISED and not force:
        return False

    if _env("OTEL_TRACES_ENABLED", "1").lower() in _FLAG_OFF:
        LOGGER.info("Wizard tracing disabled via OTEL_TRACES_ENABLED")
        return False

    otlp = _build_otlp_config()
    console = _env("WIZARD_TRACE_CONSOLE").lower() in _FLAG_ON
    if otlp is None and not console:
        LOGGER.debug("No span exporter configured; wizard spans stay local")
        return False

    service_name = _env("OTEL_SERVICE_NAME") or DEFAULT_SERVICE_NAME
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}), sampler=_build_sampler())
    if otlp is not None:
        provider.add_span_processor(BatchSpanProcessor(otlp.create_exporter()))
    if console:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)

    _INITIALISED = True
    LOGGER.info("Wizard tracing initialised for service '%s'", service_name)
    return True


__all__ = ["OtlpConfig", "setup_tracing"]
