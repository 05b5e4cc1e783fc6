"""OpenTelemetry tracing for scrapegate.

When enabled, every HTTP request gets a server span from the FastAPI
instrumentation and every handled scrape a child ``metrics.scrape`` span
tagged with the negotiated exposition format and the response status.
Spans are exported over OTLP/gRPC; incoming B3 headers continue the
scraper's trace.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.propagate import set_global_textmap
from opentelemetry.propagators.b3 import B3MultiFormat
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)


def configure_opentelemetry(
    service_name: str,
    service_version: str,
    otlp_endpoint: str,
    otlp_headers: str | None = None,
    enabled: bool = False,
) -> None:
    """Install the global tracer provider that exports scrape spans.

    Failures are logged and leave the default no-op provider in place, so
    scrapes are still served without tracing.

    Args:
        service_name: ``service.name`` resource attribute
        service_version: ``service.version`` resource attribute
        otlp_endpoint: OTLP gRPC collector endpoint
        otlp_headers: Optional comma-separated ``key=value`` exporter headers
        enabled: OTEL_ENABLED; when False nothing is installed
    """
    if not enabled:
        logger.info("OpenTelemetry tracing is disabled")
        return

    try:
        set_global_textmap(B3MultiFormat())

        resource = Resource.create({
            "service.name": service_name,
            "service.version": service_version,
            "service.namespace": "scrapegate",
        })

        tracer_provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(tracer_provider)

        otlp_exporter = OTLPSpanExporter(
            endpoint=otlp_endpoint,
            headers=otlp_headers,
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

        logger.info("OpenTelemetry configured for service '%s'", service_name)
        logger.info("OTLP endpoint: %s", otlp_endpoint)

    except Exception as e:
        logger.warning("Failed to configure OpenTelemetry: %s", e)
        logger.info("Scrapes will be served without tracing")


def instrument_fastapi(app: Any, enabled: bool = False) -> None:
    """Add request spans to the app so scrape spans have an HTTP parent."""
    if not enabled:
        return

    try:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")
    except Exception as e:
        logger.warning("Failed to instrument FastAPI: %s", e)


def get_tracer() -> trace.Tracer:
    """Tracer that scrape spans are started from."""
    return trace.get_tracer(__name__)


@contextmanager
def scrape_span(format_name: str) -> Iterator[trace.Span]:
    """Wrap one scrape in a span; a no-op span when tracing is not configured."""
    with get_tracer().start_as_current_span("metrics.scrape") as span:
        span.set_attribute("scrapegate.format", format_name)
        yield span
