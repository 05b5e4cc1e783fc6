from contextlib import asynccontextmanager
import logging

from uuid import uuid4

from fastapi import FastAPI, Request

from scrapegate import __version__
from scrapegate.api.health import router as health_router
from scrapegate.api.metrics import ScrapeMiddleware, ScrapeSettings
from scrapegate.core.config import Settings, get_settings
from scrapegate.core.telemetry import configure_opentelemetry, instrument_fastapi

logger = logging.getLogger(__name__)
REQUEST_ID_HEADER = "X-Request-Id"


def _configure_logging(log_level: str) -> None:
    """
    Apply LOG_LEVEL to the scrapegate logger namespace.

    Scrapes arrive every few seconds, so uvicorn's per-request access log is
    dropped to WARNING unless DEBUG logging was asked for.
    """
    level = logging.getLevelName(log_level)
    if not isinstance(level, int):
        level = logging.INFO
    logging.getLogger("scrapegate").setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(
        logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    )


def _install_request_id_middleware(app: FastAPI) -> None:
    """Ensure each response includes a stable X-Request-Id header."""

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER, str(uuid4()))
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    settings = getattr(app.state, "settings", None) or get_settings()

    configure_opentelemetry(
        service_name=settings.otel_service_name,
        service_version=settings.otel_service_version,
        otlp_endpoint=settings.otel_exporter_otlp_endpoint,
        otlp_headers=settings.otel_exporter_otlp_headers,
        enabled=settings.otel_enabled,
    )
    logger.info("Serving metrics on %s", settings.metrics_path)

    yield


def create_app(
    settings: Settings | None = None,
    scrape_settings: ScrapeSettings | None = None,
) -> FastAPI:
    """Application factory for FastAPI.

    ``scrape_settings`` overrides the endpoint configuration derived from
    ``settings``, e.g. to serve a custom registry.
    """
    settings = settings or get_settings()
    app = FastAPI(
        title="scrapegate",
        description="Prometheus scrape endpoint with content negotiation.",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings

    _configure_logging(settings.log_level)

    instrument_fastapi(app, enabled=settings.otel_enabled)

    # Added first so it sits inside the request id middleware
    app.add_middleware(
        ScrapeMiddleware,
        settings=scrape_settings or ScrapeSettings.from_settings(settings),
    )
    _install_request_id_middleware(app)
    app.include_router(health_router)

    return app


app = create_app()
