"""Tests for common utilities."""

import pytest
from prometheus_client import CollectorRegistry
from pydantic import ValidationError
import structlog

from libs.common.config import BaseConfig, SearchConfig, get_config
from libs.common.errors import EmbeddingError, SearchProviderError, SearchServiceError
from libs.common.logging import configure_logging, log_performance, request_context
from libs.common.metrics import MetricsCollector
from libs.common.models import Document


def test_config_loading():
    """Test configuration loading."""
    config = BaseConfig()
    assert config.ml_env == "local"
    assert config.ml_log_level == "INFO"
    assert config.ml_vector_dimension == 0


def test_search_config_defaults():
    config = SearchConfig()
    assert config.ml_search_port == 9007
    assert config.ml_search_fusion_algorithm == "positional"
    assert config.ml_opensearch_index == "hybrid_search"
    assert config.opensearch_hosts == ["http://localhost:9200"]


def test_search_config_from_environment(monkeypatch):
    monkeypatch.setenv("ML_OPENSEARCH_HOSTS", "http://os1:9200, http://os2:9200,")
    monkeypatch.setenv("ML_SEARCH_FUSION_ALGORITHM", "rrf")
    monkeypatch.setenv("ML_QUERY_REWRITE_ENABLED", "false")

    config = get_config("search")

    assert isinstance(config, SearchConfig)
    assert config.opensearch_hosts == ["http://os1:9200", "http://os2:9200"]
    assert config.ml_search_fusion_algorithm == "rrf"
    assert config.ml_query_rewrite_enabled is False


def test_get_config_unknown_service():
    assert type(get_config("unknown")) is BaseConfig


def test_logging_configuration():
    """Test logging configuration."""
    # This should not raise an exception
    configure_logging("test-service", "INFO", "json")
    configure_logging("test-service", "debug", "console")
    log_performance("hybrid_search", 12.5, results_count=3)


def test_request_context_binds_and_unbinds_request_id():
    with request_context("req-1", path="/api/search/hybrid") as request_id:
        bound = structlog.contextvars.get_contextvars()

    assert request_id == "req-1"
    assert bound["request_id"] == "req-1"
    assert bound["path"] == "/api/search/hybrid"
    assert "request_id" not in structlog.contextvars.get_contextvars()

    with request_context() as generated:
        assert len(generated) == 32


def test_metrics_collector():
    """Test metrics collector."""
    collector = MetricsCollector("test-service", registry=CollectorRegistry())
    assert collector.service_name == "test-service"

    collector.record_http_request("GET", "/api/search/lexical", 200, 0.1)
    collector.record_search("hybrid", 0.05)
    collector.record_degraded_branch("semantic")
    collector.record_embedding("error", 0.2)
    collector.record_vector_index_operation("upsert", 9)
    collector.record_circuit_state("embedding_service", "open")

    metrics = collector.get_metrics()
    assert isinstance(metrics, str)
    assert "http_requests_total" in metrics
    assert 'search_requests_total{query_type="hybrid"} 1.0' in metrics
    assert 'search_degraded_branches_total{source="semantic"} 1.0' in metrics
    assert 'embedding_requests_total{status="error"} 1.0' in metrics
    assert "vector_index_documents 9.0" in metrics
    assert 'circuit_breaker_state{name="embedding_service"} 2.0' in metrics


def test_document_model():
    document = Document(id="job1", title="Python Developer")

    assert document.content == ""
    assert document.embedding_text() == "Title: Python Developer\nContent: \nType: \nCategory: "

    with pytest.raises(ValidationError):
        Document(id="   ")

    with pytest.raises(ValidationError):
        document.title = "changed"


def test_error_hierarchy():
    error = SearchProviderError("lexical", "timeout", TimeoutError())

    assert isinstance(error, SearchServiceError)
    assert isinstance(EmbeddingError("x"), SearchServiceError)
    assert error.source == "lexical"
    assert isinstance(error.cause, TimeoutError)
    assert "lexical provider failed" in str(error)
