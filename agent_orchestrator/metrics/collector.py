"""
Metrics Collector - in-process scheduling and dispatch metrics

Counters, gauges and histograms keyed by name plus labels. The resilient
executor records attempts and breaker rejections per operation class; the
execution monitor records task durations and layer speedup.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class MetricType(str, Enum):
    """Metric type"""
    COUNTER = "counter"
    GAUGE = "gauge"
    HISTOGRAM = "histogram"


@dataclass
class MetricEntry:
    name: str
    value: float
    timestamp: datetime
    labels: Dict[str, str] = field(default_factory=dict)
    metric_type: MetricType = MetricType.GAUGE


class MetricsCollector:
    """
    Metrics collector

    Keeps the last `max_entries` raw entries for inspection and unbounded
    aggregates per (name, labels) key.
    """

    def __init__(self, max_entries: int = 10000, max_samples: int = 1000):
        self._max_entries = max_entries
        self._max_samples = max_samples
        self._metrics: List[MetricEntry] = []
        self._counters: Dict[str, float] = defaultdict(float)
        self._gauges: Dict[str, float] = {}
        self._histograms: Dict[str, List[float]] = defaultdict(list)

    # =========================================================================
    # Counter Methods
    # =========================================================================

    def increment(
        self,
        name: str,
        value: float = 1.0,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        key = self._make_key(name, labels)
        self._counters[key] += value
        self._record(name, self._counters[key], labels, MetricType.COUNTER)

    def get_counter(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> float:
        return self._counters.get(self._make_key(name, labels), 0.0)

    # =========================================================================
    # Gauge Methods
    # =========================================================================

    def set_gauge(
        self,
        name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        self._gauges[self._make_key(name, labels)] = value
        self._record(name, value, labels, MetricType.GAUGE)

    def get_gauge(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> Optional[float]:
        return self._gauges.get(self._make_key(name, labels))

    # =========================================================================
    # Histogram Methods
    # =========================================================================

    def observe(
        self,
        name: str,
        value: float,
        labels: Optional[Dict[str, str]] = None
    ) -> None:
        key = self._make_key(name, labels)
        samples = self._histograms[key]
        samples.append(value)
        if len(samples) > self._max_samples:
            del samples[: len(samples) - self._max_samples]
        self._record(name, value, labels, MetricType.HISTOGRAM)

    def get_histogram_stats(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> Dict[str, float]:
        values = self._histograms.get(self._make_key(name, labels), [])

        if not values:
            return {"count": 0, "min": 0, "max": 0, "avg": 0, "p50": 0, "p90": 0, "p99": 0}

        sorted_values = sorted(values)
        count = len(values)

        return {
            "count": count,
            "min": sorted_values[0],
            "max": sorted_values[-1],
            "avg": sum(values) / count,
            "p50": self._percentile(sorted_values, 50),
            "p90": self._percentile(sorted_values, 90),
            "p99": self._percentile(sorted_values, 99),
        }

    # =========================================================================
    # Domain helpers
    # =========================================================================

    def record_operation(
        self,
        operation_class: str,
        outcome: str,
        attempts: int,
        elapsed_ms: float
    ) -> None:
        """Record one resilient-executor call ("success", "failure", "rejected")"""
        labels = {"operation_class": operation_class}
        self.increment("operation_calls_total", 1, labels)
        self.increment(f"operation_{outcome}_total", 1, labels)
        self.increment("operation_attempts_total", attempts, labels)
        if outcome != "rejected":
            self.observe("operation_latency_ms", elapsed_ms, labels)

    def record_task_execution(
        self,
        task_id: str,
        agent_id: str,
        execution_time_ms: float,
        success: bool
    ) -> None:
        labels = {"agent_id": agent_id}
        self.observe("task_execution_time_ms", execution_time_ms, labels)
        if success:
            self.increment("task_success_total", 1, labels)
        else:
            self.increment("task_failure_total", 1, labels)

    def get_operation_stats(self, operation_class: str) -> Dict[str, Any]:
        labels = {"operation_class": operation_class}
        return {
            "operation_class": operation_class,
            "calls": int(self.get_counter("operation_calls_total", labels)),
            "successes": int(self.get_counter("operation_success_total", labels)),
            "failures": int(self.get_counter("operation_failure_total", labels)),
            "rejected": int(self.get_counter("operation_rejected_total", labels)),
            "attempts": int(self.get_counter("operation_attempts_total", labels)),
            "latency": self.get_histogram_stats("operation_latency_ms", labels),
        }

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_metrics": len(self._metrics),
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "histograms": {
                key: self._stats_for_key(key) for key in self._histograms
            },
        }

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _record(
        self,
        name: str,
        value: float,
        labels: Optional[Dict[str, str]],
        metric_type: MetricType
    ) -> None:
        self._metrics.append(MetricEntry(
            name=name,
            value=value,
            timestamp=datetime.now(),
            labels=labels or {},
            metric_type=metric_type
        ))
        if len(self._metrics) > self._max_entries:
            del self._metrics[: len(self._metrics) - self._max_entries]

    def _stats_for_key(self, key: str) -> Dict[str, float]:
        values = sorted(self._histograms[key])
        if not values:
            return {"count": 0}
        return {
            "count": len(values),
            "avg": sum(values) / len(values),
            "p50": self._percentile(values, 50),
            "p99": self._percentile(values, 99),
        }

    def _make_key(
        self,
        name: str,
        labels: Optional[Dict[str, str]] = None
    ) -> str:
        if not labels:
            return name

        label_str = "__".join(
            f"{k}={v}" for k, v in sorted(labels.items())
        )
        return f"{name}__{label_str}"

    def _percentile(self, sorted_values: List[float], p: int) -> float:
        if not sorted_values:
            return 0

        index = int(len(sorted_values) * p / 100)
        index = min(index, len(sorted_values) - 1)
        return sorted_values[index]
