"""Tests for registry collection, failures and default registry wiring."""

from __future__ import annotations

import threading

import pytest
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

from scrapegate.collection.collectors import CallbackCollector, RuntimeStatsCollector
from scrapegate.collection.registry import (
    MetricsRegistry,
    ScrapeFailedError,
    ScrapeFailure,
    Snapshot,
    get_default_registry,
    resolve_registry,
)


class FailingCollector:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc
        self.calls = 0

    def collect(self):
        self.calls += 1
        raise self.exc


def test_collect_all_returns_snapshot_with_registered_metrics(
    metrics_registry, requests_counter
):
    result = metrics_registry.collect_all()

    assert isinstance(result, Snapshot)
    assert "requests" in result.names()
    assert result.get_sample_value("requests_total") == 5.0


def test_collect_all_on_empty_registry_is_empty_snapshot():
    result = MetricsRegistry(CollectorRegistry()).collect_all()

    assert isinstance(result, Snapshot)
    assert len(result) == 0


def test_on_demand_collectors_run_first_in_registration_order(
    metrics_registry, requests_counter
):
    metrics_registry.register_on_demand_collectors(
        [
            CallbackCollector("first_value", "First.", lambda: 1),
            CallbackCollector("second_value", "Second.", lambda: 2),
        ]
    )

    result = metrics_registry.collect_all()

    assert result.names() == ["first_value", "second_value", "requests"]
    assert result.get_sample_value("second_value") == 2.0


def test_on_demand_collectors_are_invoked_on_every_scrape(metrics_registry):
    calls = []
    metrics_registry.register_on_demand_collectors(
        [CallbackCollector("queue_depth", "Depth.", lambda: calls.append(1) or len(calls))]
    )

    metrics_registry.collect_all()
    result = metrics_registry.collect_all()

    assert len(calls) == 2
    assert result.get_sample_value("queue_depth") == 2.0


def test_registering_same_collector_twice_keeps_one(metrics_registry):
    collector = RuntimeStatsCollector()

    metrics_registry.register_on_demand_collectors([collector])
    metrics_registry.register_on_demand_collectors([collector])

    assert metrics_registry.on_demand_collectors == (collector,)


def test_ensure_default_collectors_registers_runtime_stats_once(metrics_registry):
    metrics_registry.ensure_default_collectors()
    metrics_registry.ensure_default_collectors()

    collectors = metrics_registry.on_demand_collectors
    assert len(collectors) == 1
    assert isinstance(collectors[0], RuntimeStatsCollector)
    assert "python_threads" in metrics_registry.collect_all().names()


def test_scrape_failed_error_message_is_passed_through(metrics_registry):
    metrics_registry.register_on_demand_collectors(
        [FailingCollector(ScrapeFailedError("database unreachable"))]
    )

    result = metrics_registry.collect_all()

    assert result == ScrapeFailure(message="database unreachable")


def test_scrape_failed_error_without_message_has_no_message(metrics_registry):
    metrics_registry.register_on_demand_collectors([FailingCollector(ScrapeFailedError())])

    result = metrics_registry.collect_all()

    assert isinstance(result, ScrapeFailure)
    assert result.message is None


def test_unexpected_collector_error_becomes_failure(metrics_registry, caplog):
    metrics_registry.register_on_demand_collectors(
        [FailingCollector(RuntimeError("boom"))]
    )

    result = metrics_registry.collect_all()

    assert result == ScrapeFailure(message="boom")
    assert "Metric collection failed" in caplog.text


def test_failure_stops_at_failing_collector(metrics_registry):
    failing = FailingCollector(ScrapeFailedError("stop"))
    never_called = FailingCollector(RuntimeError("unreachable"))
    metrics_registry.register_on_demand_collectors([failing, never_called])

    metrics_registry.collect_all()

    assert failing.calls == 1
    assert never_called.calls == 0


def test_gauge_callback_error_during_registry_iteration_fails_scrape(
    collector_registry, metrics_registry
):
    def broken() -> float:
        raise ValueError("sensor offline")

    gauge = Gauge("temperature_celsius", "Temperature.", registry=collector_registry)
    gauge.set_function(broken)

    result = metrics_registry.collect_all()

    assert result == ScrapeFailure(message="sensor offline")


def test_snapshot_is_not_affected_by_later_updates(metrics_registry, requests_counter):
    snapshot = metrics_registry.collect_all()

    requests_counter.inc(10)

    assert snapshot.get_sample_value("requests_total") == 5.0
    assert metrics_registry.collect_all().get_sample_value("requests_total") == 15.0


def test_snapshot_collect_can_be_repeated(metrics_registry, requests_counter):
    snapshot = metrics_registry.collect_all()

    assert list(snapshot.collect()) == list(snapshot.collect())


def test_concurrent_scrapes_during_updates_never_fail(
    collector_registry, metrics_registry
):
    counter = Counter(
        "jobs", "Processed jobs.", ["queue"], registry=collector_registry
    )
    histogram = Histogram("job_seconds", "Job latency.", registry=collector_registry)
    stop = threading.Event()
    errors: list[BaseException] = []
    results: list[list[float]] = []

    def writer() -> None:
        i = 0
        while not stop.is_set():
            counter.labels(queue=f"q{i % 20}").inc()
            histogram.observe(i % 7)
            i += 1

    def scraper() -> None:
        seen: list[float] = []
        try:
            for _ in range(50):
                result = metrics_registry.collect_all()
                assert isinstance(result, Snapshot)
                seen.append(result.get_sample_value("jobs_total", {"queue": "q0"}) or 0.0)
        except BaseException as exc:  # noqa: BLE001 - reported below
            errors.append(exc)
        results.append(seen)

    writers = [threading.Thread(target=writer) for _ in range(2)]
    scrapers = [threading.Thread(target=scraper) for _ in range(4)]
    for thread in writers + scrapers:
        thread.start()
    for thread in scrapers:
        thread.join()
    stop.set()
    for thread in writers:
        thread.join()

    assert errors == []
    for seen in results:
        # Counters only grow, so each scraper sees a non-decreasing series
        assert seen == sorted(seen)


class TestResolveRegistry:
    def test_custom_registry_is_returned_untouched(self, metrics_registry):
        assert resolve_registry(metrics_registry) is metrics_registry
        assert metrics_registry.on_demand_collectors == ()

    def test_custom_registry_with_collectors_is_rejected(self, metrics_registry):
        with pytest.raises(ValueError):
            resolve_registry(metrics_registry, [RuntimeStatsCollector()])

    def test_default_registry_gets_runtime_collector_once(self, default_registry_reset):
        first = resolve_registry()
        second = resolve_registry()

        assert first is second is get_default_registry()
        assert len(first.on_demand_collectors) == 1
        assert isinstance(first.on_demand_collectors[0], RuntimeStatsCollector)

    def test_default_registry_gets_explicit_collectors(self, default_registry_reset):
        collector = CallbackCollector("answer", "Answer.", lambda: 42)

        registry = resolve_registry(on_demand_collectors=[collector])

        assert registry.on_demand_collectors == (collector,)

    def test_empty_collector_list_registers_nothing(self, default_registry_reset):
        registry = resolve_registry(on_demand_collectors=[])

        assert registry.on_demand_collectors == ()
