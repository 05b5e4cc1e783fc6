"""Metric collection for the scrape endpoint.

This package holds the shared registry wrapper, the snapshot/failure results
it produces, and the on-demand collectors invoked at scrape time.
"""

from scrapegate.collection.collectors import (
    CallbackCollector,
    OnDemandCollector,
    RuntimeStatsCollector,
)
from scrapegate.collection.registry import (
    CollectionResult,
    MetricsRegistry,
    ScrapeFailedError,
    ScrapeFailure,
    Snapshot,
    get_default_registry,
    resolve_registry,
)

__all__ = [
    "CallbackCollector",
    "CollectionResult",
    "MetricsRegistry",
    "OnDemandCollector",
    "RuntimeStatsCollector",
    "ScrapeFailedError",
    "ScrapeFailure",
    "Snapshot",
    "get_default_registry",
    "resolve_registry",
]
