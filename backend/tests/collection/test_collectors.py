"""Unit tests for on-demand collectors."""

import pytest
from prometheus_client import ProcessCollector

from scrapegate.collection.collectors import (
    CallbackCollector,
    OnDemandCollector,
    RuntimeStatsCollector,
)


def _samples(collector):
    return {
        (sample.name, tuple(sorted(sample.labels.items()))): sample.value
        for family in collector.collect()
        for sample in family.samples
    }


def test_runtime_stats_collector_emits_runtime_gauges():
    families = {family.name: family for family in RuntimeStatsCollector().collect()}

    assert set(families) == {
        "python_threads",
        "python_gc_tracked_objects",
        "process_uptime_seconds",
    }
    assert all(family.type == "gauge" for family in families.values())
    assert families["python_threads"].samples[0].value >= 1
    generations = [s.labels["generation"] for s in families["python_gc_tracked_objects"].samples]
    assert generations[0] == "0"
    assert generations == [str(i) for i in range(len(generations))]


def test_runtime_stats_collector_applies_namespace():
    names = [family.name for family in RuntimeStatsCollector(namespace="worker").collect()]

    assert names == [
        "worker_python_threads",
        "worker_python_gc_tracked_objects",
        "worker_process_uptime_seconds",
    ]


def test_runtime_stats_uptime_is_non_negative():
    samples = _samples(RuntimeStatsCollector())

    assert samples[("process_uptime_seconds", ())] >= 0


def test_callback_collector_computes_value_at_collect_time():
    state = {"value": 1}
    collector = CallbackCollector("pool_size", "Pool size.", lambda: state["value"])

    assert _samples(collector) == {("pool_size", ()): 1.0}
    state["value"] = 7
    assert _samples(collector) == {("pool_size", ()): 7.0}


def test_callback_collector_with_labels():
    collector = CallbackCollector(
        "pool_size", "Pool size.", lambda: 3, labels={"pool": "primary"}
    )

    assert _samples(collector) == {("pool_size", (("pool", "primary"),)): 3.0}


def test_callback_counter_uses_total_sample_name():
    collector = CallbackCollector("restarts", "Restarts.", lambda: 2, kind="counter")

    [family] = collector.collect()

    assert family.type == "counter"
    assert family.samples[0].name == "restarts_total"


def test_callback_collector_rejects_unknown_kind():
    with pytest.raises(ValueError):
        CallbackCollector("x", "X.", lambda: 1, kind="histogram")


def test_callback_errors_propagate():
    def broken() -> float:
        raise RuntimeError("no reading")

    with pytest.raises(RuntimeError, match="no reading"):
        list(CallbackCollector("x", "X.", broken).collect())


def test_stock_collectors_satisfy_on_demand_protocol():
    assert isinstance(ProcessCollector(registry=None), OnDemandCollector)
    assert isinstance(RuntimeStatsCollector(), OnDemandCollector)
    assert isinstance(CallbackCollector("x", "X.", lambda: 1), OnDemandCollector)
