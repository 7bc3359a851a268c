"""
Metrics Collector Unit Tests
"""

import pytest

from agent_orchestrator.metrics import MetricsCollector, MetricType


class TestMetricsCollectorCounters:
    """Counter methods"""

    @pytest.fixture
    def collector(self):
        return MetricsCollector()

    def test_increment_counter(self, collector):
        collector.increment("test_counter")
        assert collector.get_counter("test_counter") == 1.0

        collector.increment("test_counter", 5.0)
        assert collector.get_counter("test_counter") == 6.0

    def test_counter_with_labels(self, collector):
        """Labels split one name into separate series"""
        collector.increment("dispatches", labels={"agent_id": "a"})
        collector.increment("dispatches", labels={"agent_id": "b"})
        collector.increment("dispatches", labels={"agent_id": "a"}, value=2.0)

        assert collector.get_counter("dispatches", {"agent_id": "a"}) == 3.0
        assert collector.get_counter("dispatches", {"agent_id": "b"}) == 1.0

    def test_get_nonexistent_counter(self, collector):
        assert collector.get_counter("nonexistent") == 0.0


class TestMetricsCollectorGauges:
    """Gauge methods"""

    @pytest.fixture
    def collector(self):
        return MetricsCollector()

    def test_set_gauge(self, collector):
        collector.set_gauge("pool_load", 10.0)
        assert collector.get_gauge("pool_load") == 10.0

        collector.set_gauge("pool_load", 5.0)
        assert collector.get_gauge("pool_load") == 5.0

    def test_get_nonexistent_gauge(self, collector):
        assert collector.get_gauge("nonexistent") is None


class TestMetricsCollectorHistograms:
    """Histogram methods"""

    @pytest.fixture
    def collector(self):
        return MetricsCollector()

    def test_observe_histogram(self, collector):
        for v in [10, 20, 30, 40, 50]:
            collector.observe("layer_duration_ms", v)

        stats = collector.get_histogram_stats("layer_duration_ms")

        assert stats["count"] == 5
        assert stats["min"] == 10
        assert stats["max"] == 50
        assert stats["avg"] == 30.0

    def test_histogram_percentiles(self, collector):
        # 100 values, 0-99
        for i in range(100):
            collector.observe("latency", i)

        stats = collector.get_histogram_stats("latency")

        assert stats["p50"] == 50
        assert stats["p90"] == 90
        assert stats["p99"] == 99

    def test_empty_histogram_stats(self, collector):
        stats = collector.get_histogram_stats("empty_histogram")

        assert stats["count"] == 0
        assert stats["avg"] == 0

    def test_samples_are_bounded(self):
        collector = MetricsCollector(max_samples=3)
        for i in range(5):
            collector.observe("latency", i)

        stats = collector.get_histogram_stats("latency")

        assert stats["count"] == 3
        assert stats["min"] == 2


class TestDomainMethods:
    """Operation and task helpers"""

    @pytest.fixture
    def collector(self):
        return MetricsCollector()

    def test_record_operation(self, collector):
        collector.record_operation("spawn-agent", "success", attempts=2, elapsed_ms=1200.0)
        collector.record_operation("spawn-agent", "failure", attempts=3, elapsed_ms=3000.0)
        collector.record_operation("spawn-agent", "rejected", attempts=0, elapsed_ms=0.0)

        stats = collector.get_operation_stats("spawn-agent")

        assert stats["calls"] == 3
        assert stats["successes"] == 1
        assert stats["failures"] == 1
        assert stats["rejected"] == 1
        assert stats["attempts"] == 5
        assert stats["latency"]["count"] == 2

    def test_record_task_execution(self, collector):
        collector.record_task_execution("t1", "agent-1", 150.0, success=True)
        collector.record_task_execution("t2", "agent-1", 50.0, success=False)

        labels = {"agent_id": "agent-1"}
        assert collector.get_counter("task_success_total", labels) == 1.0
        assert collector.get_counter("task_failure_total", labels) == 1.0
        assert collector.get_histogram_stats("task_execution_time_ms", labels)["avg"] == 100.0


class TestMetricsCollectorSummary:
    """Summary and raw entry retention"""

    def test_get_summary(self):
        collector = MetricsCollector()
        collector.increment("counter1")
        collector.set_gauge("gauge1", 50.0)
        collector.observe("histogram1", 100.0)

        summary = collector.get_summary()

        assert summary["total_metrics"] == 3
        assert summary["counters"] == {"counter1": 1.0}
        assert summary["gauges"] == {"gauge1": 50.0}
        assert summary["histograms"]["histogram1"]["count"] == 1

    def test_label_key_format(self):
        collector = MetricsCollector()
        collector.increment("operation_calls_total", labels={"operation_class": "dispatch-task"})

        assert "operation_calls_total__operation_class=dispatch-task" in collector.get_summary()["counters"]

    def test_raw_entries_are_bounded(self):
        collector = MetricsCollector(max_entries=5)
        for _ in range(10):
            collector.increment("c")

        assert len(collector._metrics) == 5
        assert collector._metrics[-1].metric_type == MetricType.COUNTER
        assert collector.get_counter("c") == 10.0
