from __future__ import annotations

import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from meridian.core.config import get_settings
from meridian.middleware.correlation_id import resolve_correlation_id


_exporters_attached = False
_provider: TracerProvider | None = None


def _tracer_provider(service_name: str) -> TracerProvider:
    """Return the process-wide provider, installing it on first use."""
    global _provider

    if _provider is None:
        settings = get_settings()
        resource = Resource.create(
            {
                "service.name": service_name,
                "service.namespace": "meridian",
                "service.version": os.getenv("MERIDIAN_VERSION", "0.1.0"),
                "deployment.environment": settings.app_env,
            }
        )
        _provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(_provider)
    return _provider


def setup_otel(service_name: str, enable: bool) -> TracerProvider | None:
    global _exporters_attached

    if not enable:
        return None

    provider = _tracer_provider(service_name)
    if _exporters_attached:
        return provider

    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    if os.getenv("OTEL_CONSOLE_EXPORTER", "false").lower() == "true":
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    _exporters_attached = True
    return provider


def setup_inmemory_otel(service_name: str = "api") -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    _tracer_provider(service_name).add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


def get_fastapi_server_request_hook():
    # runs before the correlation middleware, so resolve the id the same way it will
    def server_request_hook(span, scope: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        if span is None or not span.is_recording():
            return
        headers = dict(scope.get("headers", []))
        correlation_raw = headers.get(b"x-correlation-id")
        if correlation_raw:
            correlation_id = resolve_correlation_id(correlation_raw.decode("latin-1"))
            span.set_attribute("correlation_id", correlation_id)
        org_raw = headers.get(b"x-org-id", b"").decode("latin-1").strip()
        if org_raw.isdigit():
            span.set_attribute("org_id", int(org_raw))

    return server_request_hook
