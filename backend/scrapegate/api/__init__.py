"""HTTP surface: the scrape middleware and the liveness probe."""

from scrapegate.api.metrics import (
    RootMatch,
    ScrapeMiddleware,
    ScrapeRequest,
    ScrapeResponder,
    ScrapeResponse,
    ScrapeSettings,
)

__all__ = [
    "RootMatch",
    "ScrapeMiddleware",
    "ScrapeRequest",
    "ScrapeResponder",
    "ScrapeResponse",
    "ScrapeSettings",
]
