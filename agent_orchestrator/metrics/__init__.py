from .collector import MetricsCollector, MetricEntry, MetricType

__all__ = [
    "MetricsCollector",
    "MetricEntry",
    "MetricType",
]
