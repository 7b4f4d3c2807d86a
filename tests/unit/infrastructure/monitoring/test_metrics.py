import threading

import pytest

from resilayer.domain.errors import ConfigurationError
from resilayer.domain.models.records import MetricRecord
from resilayer.infrastructure.config.settings import MetricsConfig
from resilayer.infrastructure.monitoring.metrics import MetricsAggregator

def _record(name="op", value=10.0, cache_hit=False, success=True, timestamp=0.0):
    return MetricRecord(name=name, value=value, timestamp=timestamp, cache_hit=cache_hit, success=success)

def test_rejects_non_positive_capacity():
    with pytest.raises(ConfigurationError):
        MetricsAggregator(max_records=0)

def test_from_config(clock):
    aggregator = MetricsAggregator.from_config(MetricsConfig(max_records=5), clock=clock)
    assert aggregator.max_records == 5

def test_empty_aggregator_reports_zeroes(metrics):
    assert metrics.get_metrics() == []
    assert metrics.get_average_response_time() == 0.0
    assert metrics.get_cache_hit_rate() == 0.0
    assert metrics.get_error_rate() == 0.0
    assert metrics.get_operation_counts() == {}
    assert metrics.get_summary() == {
        "total_operations": 0,
        "average_response_time": 0.0,
        "cache_hit_rate": 0.0,
        "error_rate": 0.0,
        "operation_counts": {},
    }

def test_history_is_bounded_and_drops_oldest_first(clock):
    aggregator = MetricsAggregator(max_records=100, clock=clock)
    for i in range(150):
        aggregator.record(_record(value=float(i), timestamp=float(i)))
    retained = aggregator.get_metrics()
    assert len(retained) == 100
    assert len(aggregator) == 100
    assert retained[0].value == 50.0
    assert retained[-1].value == 149.0

def test_average_response_time(metrics):
    metrics.record(_record(name="a", value=10.0))
    metrics.record(_record(name="a", value=30.0))
    metrics.record(_record(name="b", value=5.0))
    assert metrics.get_average_response_time("a") == pytest.approx(20.0)
    assert metrics.get_average_response_time() == pytest.approx(15.0)
    assert metrics.get_average_response_time("unknown") == 0.0

def test_cache_hit_rate(metrics):
    metrics.record(_record(name="lookup", cache_hit=True))
    metrics.record(_record(name="lookup", cache_hit=False))
    metrics.record(_record(name="lookup", cache_hit=True))
    metrics.record(_record(name="other", cache_hit=False))
    assert metrics.get_cache_hit_rate("lookup") == pytest.approx(2 / 3)
    assert metrics.get_cache_hit_rate() == pytest.approx(0.5)

def test_error_rate(metrics):
    metrics.record(_record(success=True))
    metrics.record(_record(success=False))
    metrics.record(_record(success=True))
    metrics.record(_record(success=False))
    assert metrics.get_error_rate() == pytest.approx(0.5)
    assert metrics.get_error_rate("op") == pytest.approx(0.5)

def test_operation_counts(metrics):
    for name in ["a", "b", "a", "c", "a"]:
        metrics.record(_record(name=name))
    assert metrics.get_operation_counts() == {"a": 3, "b": 1, "c": 1}

def test_filter_by_name(metrics):
    metrics.record(_record(name="a", value=1.0))
    metrics.record(_record(name="b", value=2.0))
    assert [m.value for m in metrics.get_metrics("b")] == [2.0]

def test_observe_stamps_wall_time(metrics, clock):
    clock.advance(2.5)
    record = metrics.observe("op", 12, cache_hit=True, labels={"route": "/x"})
    assert record.timestamp == pytest.approx(clock.wall_time())
    assert record.value == 12.0
    assert record.cache_hit is True
    assert metrics.get_metrics()[0].labels == {"route": "/x"}

def test_get_metrics_returns_copies(metrics):
    metrics.observe("op", 1.0, labels={"k": "v"})
    snapshot = metrics.get_metrics()
    snapshot[0].labels["k"] = "changed"
    snapshot.clear()
    assert len(metrics) == 1
    assert metrics.get_metrics()[0].labels == {"k": "v"}

def test_metric_stats(metrics):
    for value in [10.0, 20.0, 5.0]:
        metrics.record(_record(name="a", value=value))
    metrics.record(_record(name="b", value=1.0))
    stats = metrics.get_metric_stats()
    assert stats["a"] == {"count": 3, "sum": 35.0, "avg": 11.67, "min": 5.0, "max": 20.0, "latest": 5.0}
    assert stats["b"]["count"] == 1
    assert list(metrics.get_metric_stats("b")) == ["b"]

def test_summary(metrics):
    metrics.record(_record(name="a", value=10.0, cache_hit=True))
    metrics.record(_record(name="a", value=20.0, success=False))
    metrics.record(_record(name="b", value=30.0))
    metrics.record(_record(name="b", value=40.0, cache_hit=True))
    summary = metrics.get_summary()
    assert summary["total_operations"] == 4
    assert summary["average_response_time"] == pytest.approx(25.0)
    assert summary["cache_hit_rate"] == pytest.approx(0.5)
    assert summary["error_rate"] == pytest.approx(0.25)
    assert summary["operation_counts"] == {"a": 2, "b": 2}

def test_clear(metrics):
    metrics.record(_record())
    metrics.clear()
    assert len(metrics) == 0
    assert metrics.get_summary()["total_operations"] == 0

def test_concurrent_recording_keeps_the_bound(clock):
    aggregator = MetricsAggregator(max_records=100, clock=clock)
    oversize = []

    def worker(worker_id):
        for i in range(200):
            aggregator.record(_record(name=f"op-{worker_id}", value=float(i)))
            if len(aggregator) > 100:
                oversize.append(len(aggregator))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert oversize == []
    assert len(aggregator) == 100
    assert sum(aggregator.get_summary()["operation_counts"].values()) == 100

def test_record_stores_its_own_copy_of_labels(metrics):
    labels = {"route": "/a"}
    metrics.record(MetricRecord(name="op", value=1.0, timestamp=0.0, labels=labels))
    labels["route"] = "/changed"
    assert metrics.get_metrics()[0].labels == {"route": "/a"}
