"""OpenTelemetry setup for unistore.

Environment Variables:
    UNISTORE_OTEL_ENABLED: "1" turns tracing on (default: off)
    UNISTORE_OTEL_SERVICE_NAME: service.name resource attribute (default: "unistore")
    UNISTORE_OTEL_EXPORTER: "otlp", "console" or "memory" (default: "otlp")
    UNISTORE_OTEL_EXPORTER_OTLP_ENDPOINT: collector endpoint (optional)
    UNISTORE_OTEL_EXPORTER_OTLP_PROTOCOL: "grpc" or "http" (default: "grpc")

The "memory" exporter keeps finished spans in process for tests.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

logger = logging.getLogger(__name__)

ENV_PREFIX = "UNISTORE_OTEL_"
TRACER_NAME = "unistore.storage"

_provider: TracerProvider | None = None
_memory_exporter: InMemorySpanExporter | None = None


def _env(name: str, default: str = "") -> str:
    return os.environ.get(f"{ENV_PREFIX}{name}", default).strip()


def is_tracing_enabled() -> bool:
    return _env("ENABLED").lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class TracingSettings:
    """Tracing options read from UNISTORE_OTEL_* variables."""

    enabled: bool
    service_name: str = "unistore"
    exporter: str = "otlp"
    otlp_endpoint: str = ""
    otlp_protocol: str = "grpc"

    @classmethod
    def from_env(cls) -> TracingSettings:
        return cls(
            enabled=is_tracing_enabled(),
            service_name=_env("SERVICE_NAME", "unistore"),
            exporter=_env("EXPORTER", "otlp").lower(),
            otlp_endpoint=_env("EXPORTER_OTLP_ENDPOINT"),
            otlp_protocol=_env("EXPORTER_OTLP_PROTOCOL", "grpc").lower(),
        )


def _otlp_processor(settings: TracingSettings) -> SpanProcessor:
    kwargs = {"endpoint": settings.otlp_endpoint} if settings.otlp_endpoint else {}
    if settings.otlp_protocol == "http":
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
            OTLPSpanExporter as HttpExporter,
        )

        return BatchSpanProcessor(HttpExporter(**kwargs))

    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
        OTLPSpanExporter as GrpcExporter,
    )

    return BatchSpanProcessor(GrpcExporter(**kwargs))


def _console_processor(settings: TracingSettings) -> SpanProcessor:
    return SimpleSpanProcessor(ConsoleSpanExporter())


def _memory_processor(settings: TracingSettings) -> SpanProcessor:
    global _memory_exporter
    _memory_exporter = InMemorySpanExporter()
    return SimpleSpanProcessor(_memory_exporter)


_PROCESSORS: dict[str, Callable[[TracingSettings], SpanProcessor]] = {
    "otlp": _otlp_processor,
    "console": _console_processor,
    "memory": _memory_processor,
}


def configure_tracing(settings: TracingSettings | None = None) -> bool:
    """Install the tracer provider once per process.

    Args:
        settings: Tracing options. Defaults to TracingSettings.from_env().

    Returns:
        True if tracing is enabled and a provider is installed.
    """
    global _provider

    settings = settings or TracingSettings.from_env()
    if not settings.enabled:
        logger.debug("Tracing disabled (%sENABLED not set)", ENV_PREFIX)
        return False
    build_processor = _PROCESSORS.get(settings.exporter)
    if build_processor is None:
        logger.error("Unknown span exporter %r, tracing stays off", settings.exporter)
        return False
    # OpenTelemetry accepts a global provider only once
    if _provider is not None:
        return True

    try:
        processor = build_processor(settings)
    except Exception as e:
        logger.error("Failed to create span exporter %s: %s", settings.exporter, e)
        return False

    provider = TracerProvider(resource=Resource.create({"service.name": settings.service_name}))
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)
    _provider = provider

    logger.info(
        "Tracing configured: service=%s, exporter=%s", settings.service_name, settings.exporter
    )
    return True


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(TRACER_NAME)


def get_test_spans() -> list[ReadableSpan]:
    """Finished spans held by the memory exporter."""
    if _memory_exporter is None:
        return []
    return list(_memory_exporter.get_finished_spans())


def clear_test_spans() -> None:
    if _memory_exporter is not None:
        _memory_exporter.clear()
