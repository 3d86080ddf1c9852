"""Tests for the embedding service client."""

import json

import httpx
import numpy as np
import pytest
from prometheus_client import CollectorRegistry

from libs.common.errors import EmbeddingError
from libs.common.metrics import MetricsCollector
from service_search.app.adapters.circuit_breaker import CircuitBreaker, CircuitBreakerState
from service_search.app.encoders.embedding_client import HttpEmbeddingProvider, embedding_retry_config


def no_wait_retry(max_attempts=2):
    return embedding_retry_config(max_attempts=max_attempts, base_delay=0.0, jitter=False)


def build_provider(handler, max_attempts=2, circuit_breaker=None, metrics_collector=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpEmbeddingProvider(
        "http://embedding:9006/",
        model="test-model",
        http_client=client,
        retry_config=no_wait_retry(max_attempts),
        circuit_breaker=circuit_breaker,
        metrics_collector=metrics_collector,
    )


@pytest.mark.asyncio
async def test_embed_success():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"vectors": [[0.1, 0.2, 0.3]], "model": "test-model"})

    collector = MetricsCollector("test-service", registry=CollectorRegistry())
    provider = build_provider(handler, metrics_collector=collector)

    vector = await provider.embed("hello world")

    assert isinstance(vector, np.ndarray)
    assert vector.tolist() == pytest.approx([0.1, 0.2, 0.3])
    assert str(requests[0].url) == "http://embedding:9006/api/v1/embed"
    assert json.loads(requests[0].content) == {"items": [{"text": "hello world"}], "model": "test-model"}
    assert 'embedding_requests_total{status="success"} 1.0' in collector.get_metrics()


@pytest.mark.asyncio
async def test_embed_retries_then_raises_on_server_error():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, json={"detail": "overloaded"})

    provider = build_provider(handler, max_attempts=3)

    with pytest.raises(EmbeddingError):
        await provider.embed("hello")

    assert len(calls) == 3


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"detail": "text too long"})

    provider = build_provider(handler, max_attempts=3)

    with pytest.raises(EmbeddingError) as exc_info:
        await provider.embed("hello")

    assert exc_info.value.retryable is False
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_embed_recovers_after_transient_error():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={"vectors": [[1.0, 0.0]]})

    provider = build_provider(handler)

    vector = await provider.embed("hello")

    assert vector.tolist() == [1.0, 0.0]
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_transport_error_becomes_embedding_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = build_provider(handler)

    with pytest.raises(EmbeddingError) as exc_info:
        await provider.embed("hello")

    assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"vectors": []},
    {"vectors": [[]]},
    {"vectors": [[[1.0, 2.0]]]},
    {"vectors": [["a", "b"]]},
    ["not", "a", "dict"],
])
async def test_malformed_payload_raises(payload):
    def handler(request):
        return httpx.Response(200, json=payload)

    provider = build_provider(handler, max_attempts=1)

    with pytest.raises(EmbeddingError):
        await provider.embed("hello")


@pytest.mark.asyncio
async def test_open_circuit_short_circuits_calls():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60.0, name="embedding_service")
    provider = build_provider(handler, max_attempts=1, circuit_breaker=breaker)

    with pytest.raises(EmbeddingError):
        await provider.embed("first")
    assert breaker.get_state() == CircuitBreakerState.OPEN

    with pytest.raises(EmbeddingError):
        await provider.embed("second")
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_close_leaves_shared_client_open():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    provider = HttpEmbeddingProvider("http://embedding:9006", http_client=client)

    await provider.close()

    assert not client.is_closed
    await client.aclose()
