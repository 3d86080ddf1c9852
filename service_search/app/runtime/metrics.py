"""Metrics facade for the search service.

Callers inside the service import the collector from here rather than from
``libs`` directly.
"""

from libs.common.metrics import MetricsCollector, get_metrics_collector

__all__ = ["MetricsCollector", "get_metrics_collector"]
