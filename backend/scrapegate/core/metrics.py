from __future__ import annotations

from prometheus_client import Counter, Histogram

SCRAPES = Counter(
    "scrapegate_scrapes_total",
    "Scrape requests handled by the metrics endpoint.",
    labelnames=("format", "result"),
)
SCRAPE_DURATION = Histogram(
    "scrapegate_scrape_duration_seconds",
    "Time spent collecting and rendering a scrape.",
    labelnames=("format",),
)


def record_scrape(fmt: str, result: str) -> None:
    """Increment the scrape counter for a format and outcome."""
    SCRAPES.labels(format=fmt, result=result).inc()


def observe_scrape_duration(fmt: str, duration_seconds: float) -> None:
    """Record how long one scrape took."""
    SCRAPE_DURATION.labels(format=fmt).observe(duration_seconds)
