"""On-demand collectors that compute metric values at scrape time."""

from __future__ import annotations

import gc
import threading
import time
from typing import Callable, Iterable, Protocol, runtime_checkable

from prometheus_client.metrics_core import (
    CounterMetricFamily,
    GaugeMetricFamily,
    Metric,
)


@runtime_checkable
class OnDemandCollector(Protocol):
    """Anything that contributes metric families when a scrape happens.

    This is the ``prometheus_client`` custom collector contract, so stock
    collectors built with ``registry=None`` qualify as well.
    """

    def collect(self) -> Iterable[Metric]:
        ...


def _prefixed(namespace: str, name: str) -> str:
    return f"{namespace}_{name}" if namespace else name


class RuntimeStatsCollector:
    """Interpreter statistics not covered by the stock process/gc collectors."""

    def __init__(self, namespace: str = "") -> None:
        self.namespace = namespace
        self._started = time.monotonic()

    def __repr__(self) -> str:
        return f"RuntimeStatsCollector(namespace={self.namespace!r})"

    def collect(self) -> Iterable[Metric]:
        threads = GaugeMetricFamily(
            _prefixed(self.namespace, "python_threads"),
            "Number of live Python threads.",
            value=threading.active_count(),
        )

        tracked = GaugeMetricFamily(
            _prefixed(self.namespace, "python_gc_tracked_objects"),
            "Allocations tracked by the garbage collector since the last collection.",
            labels=["generation"],
        )
        for generation, count in enumerate(gc.get_count()):
            tracked.add_metric([str(generation)], count)

        uptime = GaugeMetricFamily(
            _prefixed(self.namespace, "process_uptime_seconds"),
            "Seconds since the runtime stats collector was created.",
            value=time.monotonic() - self._started,
        )
        return [threads, tracked, uptime]


class CallbackCollector:
    """Single gauge or counter whose value is computed by a callable per scrape.

    Exceptions raised by ``callback`` are not caught here; the registry turns
    them into a failed scrape.
    """

    def __init__(
        self,
        name: str,
        documentation: str,
        callback: Callable[[], float],
        labels: dict[str, str] | None = None,
        kind: str = "gauge",
    ) -> None:
        if kind not in ("gauge", "counter"):
            raise ValueError(f"Unsupported callback metric kind: {kind}")
        self.name = name
        self.documentation = documentation
        self.callback = callback
        self.labels = dict(labels or {})
        self.kind = kind

    def __repr__(self) -> str:
        return f"CallbackCollector(name={self.name!r}, kind={self.kind!r})"

    def collect(self) -> Iterable[Metric]:
        value = float(self.callback())
        family_cls = GaugeMetricFamily if self.kind == "gauge" else CounterMetricFamily
        family = family_cls(
            self.name, self.documentation, labels=list(self.labels)
        )
        family.add_metric(list(self.labels.values()), value)
        return [family]


__all__ = ["CallbackCollector", "OnDemandCollector", "RuntimeStatsCollector"]
