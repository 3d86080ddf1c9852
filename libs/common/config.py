"""Configuration management for the hybrid search service.

This module centralizes environment-driven configuration. It builds on
``pydantic_settings.BaseSettings`` so configuration can be provided via
environment variables, ``.env`` files, or defaults. Field names map to
upper-cased environment variables (``ml_log_level`` <- ``ML_LOG_LEVEL``).

Usage
- Inject the config in the service entrypoint: ``config = SearchConfig()``
- Or select dynamically: ``config = get_config("search")``
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration shared by every component.

    Notes
    - Add new shared settings here so downstream configs inherit them.
    - Prefer declaring a field over reading ``os.environ`` directly.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ml_env: str = Field(default="local")

    # Logging
    ml_log_level: str = Field(default="INFO")
    ml_log_format: str = Field(default="json")

    # Vector index; 0 accepts any dimension and scores mismatches as 0.0
    ml_vector_dimension: int = Field(default=0, ge=0)


class SearchConfig(BaseConfig):
    """Configuration for the search service.

    Groups the knobs for each collaborator: embedding service, OpenSearch
    (lexical backend), the LLM query rewriter, and fusion.
    """

    ml_search_port: int = Field(default=9007)

    # Embedding service
    ml_embedding_service_url: str = Field(default="http://localhost:9006")
    ml_embedding_model: str = Field(default="default")
    ml_embedding_timeout_seconds: float = Field(default=30.0, gt=0)
    ml_embedding_retry_attempts: int = Field(default=3, ge=1)
    ml_embedding_retry_base_delay: float = Field(default=1.0, ge=0)
    ml_embedding_retry_max_delay: float = Field(default=8.0, ge=0)
    ml_embedding_circuit_failure_threshold: int = Field(default=5, ge=1)
    ml_embedding_circuit_recovery_timeout: float = Field(default=30.0, ge=0)

    # OpenSearch lexical backend
    ml_opensearch_hosts: str = Field(default="http://localhost:9200")
    ml_opensearch_index: str = Field(default="hybrid_search")
    ml_opensearch_username: Optional[str] = Field(default=None)
    ml_opensearch_password: Optional[str] = Field(default=None)
    ml_opensearch_verify_certs: bool = Field(default=False)
    ml_opensearch_ssl_assert_hostname: bool = Field(default=False)
    ml_opensearch_ssl_show_warn: bool = Field(default=False)

    # Query rewriting
    ml_query_rewrite_enabled: bool = Field(default=True)
    ml_ollama_url: str = Field(default="http://127.0.0.1:11434")
    ml_ollama_model: str = Field(default="llama3.1:latest")
    ml_ollama_timeout_seconds: float = Field(default=30.0, gt=0)

    # Fusion and request handling
    ml_search_fusion_algorithm: str = Field(default="positional")
    ml_search_rrf_k: float = Field(default=60.0, gt=0)
    ml_search_provider_timeout_seconds: float = Field(default=10.0, gt=0)
    ml_search_index_concurrency: int = Field(default=4, ge=1)
    ml_search_seed_sample_data: bool = Field(default=False)

    @property
    def opensearch_hosts(self) -> List[str]:
        """OpenSearch hosts parsed from the comma separated setting."""
        return [host.strip() for host in self.ml_opensearch_hosts.split(",") if host.strip()]


def get_config(service_name: str) -> BaseConfig:
    """Get configuration for a specific component.

    Parameters
    - service_name: Literal name, currently only ``search``.

    Returns
    - A concrete ``BaseConfig`` subclass pre-wired to read the right env vars.
    """
    config_map = {
        "search": SearchConfig,
    }

    # Default to ``BaseConfig`` to avoid surprising crashes for unknown names.
    config_class = config_map.get(service_name, BaseConfig)
    return config_class()
