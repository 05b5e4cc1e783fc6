"""Registry collection for the scrape endpoint.

``MetricsRegistry`` wraps a ``prometheus_client.CollectorRegistry`` together
with an ordered list of on-demand collectors. ``collect_all`` runs every
on-demand collector first, then the registry's own collectors, and returns a
fully materialized ``Snapshot`` or a ``ScrapeFailure``; never both.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Iterator, Sequence, Union

from prometheus_client import REGISTRY, CollectorRegistry
from prometheus_client.metrics_core import Metric

from scrapegate.collection.collectors import OnDemandCollector, RuntimeStatsCollector

logger = logging.getLogger(__name__)


class ScrapeFailedError(Exception):
    """Raised by a collector to abort the scrape with a client-visible message."""


@dataclass(frozen=True)
class ScrapeFailure:
    """Collection could not complete; the scrape should be retried later."""

    message: str | None = None


class Snapshot:
    """Immutable, ordered view of every metric family collected in one scrape.

    Exposes ``collect()`` so it can be passed to the ``prometheus_client``
    exposition encoders in place of a registry.
    """

    __slots__ = ("_families",)

    def __init__(self, families: Iterable[Metric] = ()) -> None:
        self._families: tuple[Metric, ...] = tuple(families)

    def collect(self) -> Iterator[Metric]:
        return iter(self._families)

    def __iter__(self) -> Iterator[Metric]:
        return iter(self._families)

    def __len__(self) -> int:
        return len(self._families)

    def __repr__(self) -> str:
        return f"Snapshot({', '.join(self.names())})"

    def names(self) -> list[str]:
        return [family.name for family in self._families]

    def get_sample_value(
        self, name: str, labels: dict[str, str] | None = None
    ) -> float | None:
        """Return the value of a sample, or None when it is not present."""
        wanted = labels or {}
        for family in self._families:
            for sample in family.samples:
                if sample.name == name and sample.labels == wanted:
                    return sample.value
        return None


CollectionResult = Union[Snapshot, ScrapeFailure]


class MetricsRegistry:
    """Shared metrics source: a collector registry plus on-demand collectors."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry if registry is not None else CollectorRegistry()
        self._lock = threading.Lock()
        self._on_demand: list[OnDemandCollector] = []
        self._defaults_registered = False

    @property
    def on_demand_collectors(self) -> tuple[OnDemandCollector, ...]:
        with self._lock:
            return tuple(self._on_demand)

    def register_on_demand_collectors(
        self, collectors: Iterable[OnDemandCollector]
    ) -> None:
        """Append collectors in order, skipping any already registered."""
        with self._lock:
            for collector in collectors:
                if any(existing is collector for existing in self._on_demand):
                    logger.debug(
                        "On-demand collector %r already registered", collector
                    )
                    continue
                self._on_demand.append(collector)

    def ensure_default_collectors(self) -> None:
        """Register the runtime stats collector once per registry."""
        with self._lock:
            if self._defaults_registered:
                return
            self._defaults_registered = True
            self._on_demand.append(RuntimeStatsCollector())

    def collect_all(self) -> CollectionResult:
        """Collect every metric family, or report why the scrape failed."""
        with self._lock:
            on_demand = list(self._on_demand)

        families: list[Metric] = []
        try:
            for collector in on_demand:
                families.extend(collector.collect())
            families.extend(self.registry.collect())
        except ScrapeFailedError as exc:
            message = str(exc)
            logger.warning("Scrape aborted by collector: %s", message or "<no message>")
            return ScrapeFailure(message=message or None)
        except Exception as exc:
            logger.exception("Metric collection failed")
            return ScrapeFailure(message=str(exc) or type(exc).__name__)

        return Snapshot(families)


@lru_cache
def get_default_registry() -> MetricsRegistry:
    """Return the process-wide registry over ``prometheus_client.REGISTRY``."""
    return MetricsRegistry(REGISTRY)


def resolve_registry(
    registry: MetricsRegistry | None = None,
    on_demand_collectors: Sequence[OnDemandCollector] | None = None,
) -> MetricsRegistry:
    """Pick the registry a scrape endpoint serves.

    A caller-supplied registry is assumed to be configured by its owner and is
    returned untouched. Otherwise the default registry is used and either the
    given on-demand collectors or the default runtime collector are registered
    against it.
    """
    if registry is not None:
        if on_demand_collectors is not None:
            raise ValueError(
                "on_demand_collectors can only be registered against the default "
                "registry; configure a custom registry before passing it in."
            )
        return registry

    default = get_default_registry()
    if on_demand_collectors is not None:
        default.register_on_demand_collectors(on_demand_collectors)
    else:
        default.ensure_default_collectors()
    return default


__all__ = [
    "CollectionResult",
    "MetricsRegistry",
    "ScrapeFailedError",
    "ScrapeFailure",
    "Snapshot",
    "get_default_registry",
    "resolve_registry",
]
