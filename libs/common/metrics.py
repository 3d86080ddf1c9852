"""Prometheus metrics for the search service.

Every collector owns its ``CollectorRegistry`` so tests can build as many
as they like without duplicate-timeseries errors; the running service uses
the shared one from ``get_metrics_collector``.

Label sets are fixed and small: HTTP endpoints are labelled by route
template, search metrics by ``hybrid``/``lexical``/``semantic`` and
degradation by branch source.
"""

from functools import lru_cache
from typing import Optional

from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
import structlog

logger = structlog.get_logger("search_service.metrics")

CIRCUIT_STATE_VALUES = {"closed": 0, "half_open": 1, "open": 2}

# Searches and embedding calls are expected well under a second
LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class MetricsCollector:
    """HTTP, search, embedding, vector index and circuit breaker metrics.

    Parameters
    - service_name: Service the metrics belong to
    - registry: ``CollectorRegistry`` to register into; a fresh one by default
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        reg = self.registry

        # HTTP surface
        self.request_count = Counter(
            "http_requests_total", "HTTP requests by route template and status",
            ["method", "endpoint", "status"], registry=reg,
        )
        self.request_duration = Histogram(
            "http_request_duration_seconds", "HTTP request latency",
            ["method", "endpoint"], buckets=LATENCY_BUCKETS, registry=reg,
        )

        # Search pipeline
        self.search_requests = Counter(
            "search_requests_total", "Searches served, by kind",
            ["query_type"], registry=reg,
        )
        self.search_duration = Histogram(
            "search_duration_seconds", "End-to-end search latency, by kind",
            ["query_type"], buckets=LATENCY_BUCKETS, registry=reg,
        )
        self.search_degraded = Counter(
            "search_degraded_branches_total",
            "Search branches that failed or timed out and contributed no results",
            ["source"], registry=reg,
        )

        # Embedding service
        self.embedding_requests = Counter(
            "embedding_requests_total", "Calls to the embedding service, by outcome",
            ["status"], registry=reg,
        )
        self.embedding_duration = Histogram(
            "embedding_duration_seconds", "Embedding service latency including retries",
            buckets=LATENCY_BUCKETS, registry=reg,
        )

        # Vector index
        self.vector_index_operations = Counter(
            "vector_index_operations_total", "Vector index mutations",
            ["operation"], registry=reg,
        )
        self.vector_index_size = Gauge(
            "vector_index_documents", "Documents currently held by the vector index",
            registry=reg,
        )

        self.circuit_breaker_state = Gauge(
            "circuit_breaker_state", "Circuit breaker state: 0 closed, 1 half open, 2 open",
            ["name"], registry=reg,
        )

    def record_http_request(self, method: str, endpoint: str, status: int, duration: float) -> None:
        """Count one HTTP request; ``duration`` is in seconds."""
        self.request_count.labels(method=method, endpoint=endpoint, status=str(status)).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_search(self, query_type: str, duration: float) -> None:
        self.search_requests.labels(query_type=query_type).inc()
        self.search_duration.labels(query_type=query_type).observe(duration)

    def record_degraded_branch(self, source: str) -> None:
        self.search_degraded.labels(source=source).inc()

    def record_embedding(self, status: str, duration: float) -> None:
        self.embedding_requests.labels(status=status).inc()
        self.embedding_duration.observe(duration)

    def record_vector_index_operation(self, operation: str, size: int) -> None:
        """Count a vector index mutation and publish the resulting size."""
        self.vector_index_operations.labels(operation=operation).inc()
        self.vector_index_size.set(size)

    def record_circuit_state(self, name: str, state: str) -> None:
        """Publish a breaker transition; unknown states are exported as -1."""
        value = CIRCUIT_STATE_VALUES.get(state)
        if value is None:
            logger.warning("Unknown circuit breaker state", name=name, state=state)
            value = -1
        self.circuit_breaker_state.labels(name=name).set(value)

    def get_metrics(self) -> str:
        """Render the registry in Prometheus text exposition format."""
        return generate_latest(self.registry).decode("utf-8")


@lru_cache(maxsize=None)
def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Process-wide collector for ``service_name``."""
    return MetricsCollector(service_name)
