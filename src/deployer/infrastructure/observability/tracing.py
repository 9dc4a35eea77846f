"""OpenTelemetry tracing configuration."""

from __future__ import annotations

import sys

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource, SERVICE_NAME, SERVICE_VERSION
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)

from deployer.config import ObservabilitySettings


def setup_tracing(settings: ObservabilitySettings) -> None:
    """Configure OpenTelemetry tracing.

    Spans are exported synchronously to stderr; a CLI process exits before a
    batching processor would flush.
    """
    if not settings.tracing_enabled:
        return

    resource = Resource.create({
        SERVICE_NAME: settings.service_name,
        SERVICE_VERSION: "1.0.0",
    })

    provider = TracerProvider(resource=resource)
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))

    trace.set_tracer_provider(provider)


def get_tracer(name: str = "deployer") -> trace.Tracer:
    """Get a tracer instance."""
    return trace.get_tracer(name)
