"""HTTP client for the embedding service.

Speaks the embedding service's batch contract with a single item:
``POST {url}/api/v1/embed`` with ``{"items": [{"text": ...}], "model": ...}``
answering ``{"vectors": [[...]], ...}``. Calls go through a circuit breaker
and are retried with exponential backoff. Every failure surfaces as
``EmbeddingError``.
"""

import time
from typing import Optional

import httpx
import numpy as np
import structlog

from libs.common.errors import EmbeddingError
from libs.common.metrics import MetricsCollector
from libs.vector_store.embedding import EmbeddingProvider
from ..adapters.circuit_breaker import CircuitBreaker, CircuitBreakerError
from ..adapters.retry import RetryConfig, RetryHandler

logger = structlog.get_logger("search_service.embedding_client")


def _is_retryable(error: BaseException) -> bool:
    return getattr(error, "retryable", True)


def embedding_retry_config(**overrides) -> RetryConfig:
    """Retry policy for embedding calls.

    Transport errors and 5xx/429 answers are retried; rejected requests and
    malformed payloads are not.
    """
    options = {
        "retryable_exceptions": (httpx.TransportError, EmbeddingError),
        "retry_if": _is_retryable,
    }
    options.update(overrides)
    return RetryConfig(**options)


class HttpEmbeddingProvider(EmbeddingProvider):
    """Embedding provider backed by the remote embedding service.

    Parameters
    - service_url: Base URL of the embedding service
    - model: Model name forwarded in each request
    - http_client: Optional shared ``httpx.AsyncClient``; one is created
      (and owned) when omitted
    - retry_config: Backoff policy; defaults to ``embedding_retry_config()``
    - circuit_breaker: Breaker shared by all calls from this provider
    - metrics_collector: Optional collector for embedding metrics
    """

    def __init__(
        self,
        service_url: str,
        model: str = "default",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        retry_config: Optional[RetryConfig] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        metrics_collector: Optional[MetricsCollector] = None
    ):
        self.service_url = service_url.rstrip("/")
        self.model = model
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self.retry_handler = RetryHandler(retry_config or embedding_retry_config())
        self.circuit_breaker = circuit_breaker or CircuitBreaker(name="embedding_service")
        self.metrics_collector = metrics_collector

    async def _request_embedding(self, text: str) -> np.ndarray:
        response = await self.http_client.post(
            f"{self.service_url}/api/v1/embed",
            json={"items": [{"text": text}], "model": self.model}
        )
        if response.status_code != 200:
            raise EmbeddingError(
                f"Embedding service returned status {response.status_code}",
                retryable=response.status_code >= 500 or response.status_code == 429
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise EmbeddingError("Embedding service returned invalid JSON", retryable=False) from e

        vectors = payload.get("vectors") if isinstance(payload, dict) else None
        if not vectors:
            raise EmbeddingError("Embedding service returned no vectors", retryable=False)

        try:
            vector = np.asarray(vectors[0], dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise EmbeddingError("Embedding service returned a malformed vector", retryable=False) from e

        if vector.ndim != 1 or vector.size == 0:
            raise EmbeddingError(
                f"Embedding service returned a vector of shape {vector.shape}", retryable=False
            )
        return vector

    async def embed(self, text: str) -> np.ndarray:
        """Embed ``text`` through the embedding service."""
        start_time = time.time()
        try:
            vector = await self.retry_handler.execute_with_retry(
                self.circuit_breaker.call,
                self._request_embedding,
                text,
                operation_name="embedding_service_request"
            )
        except EmbeddingError:
            self._record("error", start_time)
            raise
        except (httpx.HTTPError, CircuitBreakerError) as e:
            self._record("error", start_time)
            raise EmbeddingError(f"Embedding service call failed: {e}") from e

        self._record("success", start_time)
        return vector

    def _record(self, status: str, start_time: float) -> None:
        if self.metrics_collector is not None:
            self.metrics_collector.record_embedding(status, time.time() - start_time)

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._owns_client:
            await self.http_client.aclose()
