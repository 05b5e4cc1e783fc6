"""Prometheus scrape endpoint.

``ScrapeResponder`` turns one request description into one response
description: it routes on the path, negotiates the wire format from the
``Accept`` header, collects the registry and renders the snapshot, or answers
``503`` when collection failed. ``ScrapeMiddleware`` mounts it in an ASGI
stack and forwards every other request to the wrapped application.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Sequence

from starlette.concurrency import run_in_threadpool
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

from scrapegate.collection.collectors import OnDemandCollector
from scrapegate.collection.registry import (
    MetricsRegistry,
    ScrapeFailure,
    resolve_registry,
)
from scrapegate.core.config import Settings
from scrapegate.core.metrics import observe_scrape_duration, record_scrape
from scrapegate.core.telemetry import scrape_span
from scrapegate.exposition.negotiation import (
    SUPPORTED_FORMATS,
    ExpositionFormat,
    choose_format,
    formats_from_names,
)
from scrapegate.exposition.render import render

logger = logging.getLogger(__name__)

FAILURE_CONTENT_TYPE = "text/plain; charset=utf-8"


class RootMatch(str, enum.Enum):
    """How a request path is compared against the configured metrics path."""

    EXACT = "exact"
    LENIENT = "lenient"

    def matches(self, path: str, root: str) -> bool:
        if self is RootMatch.EXACT:
            return path == root
        return path.strip().rstrip("/") == root.strip().rstrip("/")


@dataclass(frozen=True)
class ScrapeRequest:
    """Read-only view of an inbound request."""

    path: str
    accept: str | None = None


@dataclass(frozen=True)
class ScrapeResponse:
    """Status, content type and body of one handled scrape."""

    status_code: int
    content_type: str | None = None
    body: bytes = b""


@dataclass
class ScrapeSettings:
    """Construction-time configuration for the scrape endpoint.

    ``registry`` and ``on_demand_collectors`` are mutually exclusive: collectors
    are only registered against the default registry.
    """

    path: str = "/metrics"
    registry: MetricsRegistry | None = None
    on_demand_collectors: Sequence[OnDemandCollector] | None = None
    root_match: RootMatch = RootMatch.LENIENT
    formats: Sequence[ExpositionFormat] = field(
        default_factory=lambda: SUPPORTED_FORMATS
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScrapeSettings":
        """Build endpoint configuration from application settings."""
        collectors: list[OnDemandCollector] | None = None
        if not settings.metrics_runtime_collector_enabled:
            collectors = []
        return cls(
            path=settings.metrics_path,
            on_demand_collectors=collectors,
            root_match=RootMatch(settings.metrics_root_match),
            formats=formats_from_names(settings.metrics_formats),
        )


class ScrapeResponder:
    """Serve scrapes of a metrics registry."""

    def __init__(
        self,
        registry: MetricsRegistry,
        *,
        path: str = "/metrics",
        root_match: RootMatch = RootMatch.LENIENT,
        formats: Sequence[ExpositionFormat] = SUPPORTED_FORMATS,
    ) -> None:
        self.registry = registry
        self.path = path
        self.root_match = root_match
        self.formats = tuple(formats)

    @classmethod
    def from_settings(cls, settings: ScrapeSettings) -> "ScrapeResponder":
        registry = resolve_registry(settings.registry, settings.on_demand_collectors)
        return cls(
            registry,
            path=settings.path,
            root_match=settings.root_match,
            formats=settings.formats,
        )

    def matches(self, path: str) -> bool:
        return self.root_match.matches(path, self.path)

    def handle(self, request: ScrapeRequest) -> ScrapeResponse | None:
        """Answer a scrape, or return None when the path is not ours."""
        if not self.matches(request.path):
            return None
        return self.respond(request)

    def respond(self, request: ScrapeRequest) -> ScrapeResponse:
        fmt = choose_format(request.accept, self.formats)
        started = time.perf_counter()

        with scrape_span(fmt.name) as span:
            result = self.registry.collect_all()
            if isinstance(result, ScrapeFailure):
                response = self._failure(result.message)
            else:
                try:
                    body = render(result, fmt)
                except Exception as exc:
                    logger.exception("Failed to render %s metrics", fmt.name)
                    response = self._failure(f"Failed to render metrics: {exc}")
                else:
                    response = ScrapeResponse(
                        status_code=200, content_type=fmt.content_type, body=body
                    )
            span.set_attribute("http.status_code", response.status_code)

        outcome = "success" if response.status_code == 200 else "failure"
        record_scrape(fmt.name, outcome)
        observe_scrape_duration(fmt.name, time.perf_counter() - started)

        if outcome == "success":
            logger.debug(
                "Served %d bytes of %s metrics", len(response.body), fmt.name
            )
        else:
            logger.warning(
                "Metrics scrape failed: %s", response.body.decode() or "<no message>"
            )
        return response

    @staticmethod
    def _failure(message: str | None) -> ScrapeResponse:
        if not message or not message.strip():
            return ScrapeResponse(status_code=503)
        return ScrapeResponse(
            status_code=503,
            content_type=FAILURE_CONTENT_TYPE,
            body=message.encode("utf-8"),
        )


class ScrapeMiddleware:
    """ASGI middleware answering scrapes and passing everything else through.

    Usage::

        app.add_middleware(ScrapeMiddleware, settings=ScrapeSettings(path="/metrics"))
    """

    def __init__(self, app: ASGIApp, settings: ScrapeSettings | None = None) -> None:
        self.app = app
        self.responder = ScrapeResponder.from_settings(settings or ScrapeSettings())

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.responder.matches(scope.get("path", "")):
            await self.app(scope, receive, send)
            return

        request = ScrapeRequest(path=scope["path"], accept=_accept_header(scope))
        # Collectors may block on I/O; never run them on the event loop.
        result = await run_in_threadpool(self.responder.respond, request)
        response = Response(
            content=result.body,
            status_code=result.status_code,
            media_type=result.content_type,
        )
        await response(scope, receive, send)


def _accept_header(scope: Scope) -> str | None:
    values = [
        value.decode("latin-1")
        for name, value in scope.get("headers", [])
        if name.lower() == b"accept"
    ]
    return ", ".join(values) if values else None


__all__ = [
    "FAILURE_CONTENT_TYPE",
    "RootMatch",
    "ScrapeMiddleware",
    "ScrapeRequest",
    "ScrapeResponder",
    "ScrapeResponse",
    "ScrapeSettings",
]
