from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient
from prometheus_client import CollectorRegistry, Counter

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from scrapegate.api.metrics import ScrapeSettings  # noqa: E402
from scrapegate.collection.registry import (  # noqa: E402
    MetricsRegistry,
    get_default_registry,
)
from scrapegate.core.config import Settings  # noqa: E402
from scrapegate.main import create_app  # noqa: E402


@pytest.fixture()
def collector_registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture()
def metrics_registry(collector_registry: CollectorRegistry) -> MetricsRegistry:
    return MetricsRegistry(collector_registry)


@pytest.fixture()
def requests_counter(collector_registry: CollectorRegistry) -> Counter:
    """Counter ``requests_total`` already incremented to 5."""
    counter = Counter("requests", "Handled requests.", registry=collector_registry)
    counter.inc(5)
    return counter


@pytest.fixture()
def default_registry_reset() -> Iterator[None]:
    """Give each test a fresh process-wide default registry wrapper."""
    get_default_registry.cache_clear()
    yield
    get_default_registry.cache_clear()


@pytest.fixture()
def api_client(metrics_registry: MetricsRegistry) -> Iterator[TestClient]:
    """Full application serving the per-test registry."""
    app = create_app(
        Settings(),
        scrape_settings=ScrapeSettings(registry=metrics_registry),
    )
    with TestClient(app) as client:
        yield client
