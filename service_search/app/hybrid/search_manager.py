"""Search manager for hybrid lexical and semantic search.

Per request: rewrite the query, run the lexical and semantic providers
concurrently, fuse both ranked lists, and report which sources degraded.
A provider that fails or exceeds its timeout contributes an empty list and
is listed in ``degraded_sources`` instead of failing the request.

The manager also keeps both backends in sync on (de)indexing: documents go
to OpenSearch and to the in-memory vector index.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from libs.common.config import SearchConfig
from libs.common.errors import SearchServiceError
from libs.common.logging import log_performance
from libs.common.metrics import MetricsCollector
from libs.common.models import Document
from libs.vector_store.embedding import EmbeddingProvider
from libs.vector_store.memory import InMemoryVectorIndex
from ..adapters.circuit_breaker import CircuitBreaker, CircuitBreakerState
from ..bootstrap.sample_data import SAMPLE_DOCUMENTS
from ..encoders.embedding_client import HttpEmbeddingProvider, embedding_retry_config
from ..intelligence.query_rewriter import OllamaQueryRewriter, PassthroughQueryRewriter, QueryRewriter
from ..ranking.fusion import MAX_WEIGHT, FusedResult, RankFusionAlgorithm, create_fusion_algorithm
from ..retrievers.base import DocumentIndexer, LexicalSearchProvider, SemanticSearchProvider
from ..retrievers.lexical import OpenSearchLexicalProvider
from ..retrievers.semantic import VectorIndexSemanticProvider

logger = structlog.get_logger("search_service.search_manager")


@dataclass
class HybridSearchResult:
    """Outcome of one hybrid search."""
    original_query: str
    rewritten_query: str
    results: List[FusedResult]
    lexical_results_count: int
    semantic_results_count: int
    degraded_sources: List[str] = field(default_factory=list)

    @property
    def total_results(self) -> int:
        return len(self.results)


@dataclass
class IndexingResult:
    """Outcome of indexing documents into both backends.

    ``indexed`` holds ids stored by every backend; the failure maps hold the
    per-backend error for the rest.
    """
    indexed: List[str] = field(default_factory=list)
    lexical_failures: Dict[str, str] = field(default_factory=dict)
    semantic_failures: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.lexical_failures and not self.semantic_failures


class SearchManager:
    """Manages hybrid search operations.

    Responsibilities
    - Own the vector index and the provider clients
    - Rewrite queries and fan out to both providers
    - Fuse, count and flag degraded sources
    - Index and remove documents in both backends

    Collaborators default to the production implementations described by
    ``config``; tests inject fakes.
    """

    def __init__(
        self,
        config: SearchConfig,
        embedding_provider: Optional[EmbeddingProvider] = None,
        lexical_provider: Optional[LexicalSearchProvider] = None,
        query_rewriter: Optional[QueryRewriter] = None,
        fusion_algorithm: Optional[RankFusionAlgorithm] = None,
        metrics_collector: Optional[MetricsCollector] = None
    ):
        """Construct a search manager.

        Parameters
        - config: ``SearchConfig`` with service URLs, timeouts and fusion settings
        - embedding_provider / lexical_provider / query_rewriter: overrides
          for the default HTTP, OpenSearch and Ollama implementations
        - fusion_algorithm: override for the configured algorithm
        - metrics_collector: optional Prometheus collector
        """
        self.config = config
        self.metrics_collector = metrics_collector
        self.provider_timeout = config.ml_search_provider_timeout_seconds

        self.embedding_provider = embedding_provider or HttpEmbeddingProvider(
            service_url=config.ml_embedding_service_url,
            model=config.ml_embedding_model,
            timeout=config.ml_embedding_timeout_seconds,
            retry_config=embedding_retry_config(
                max_attempts=config.ml_embedding_retry_attempts,
                base_delay=config.ml_embedding_retry_base_delay,
                max_delay=config.ml_embedding_retry_max_delay,
                time_budget=self.provider_timeout,
            ),
            circuit_breaker=CircuitBreaker(
                name="embedding_service",
                failure_threshold=config.ml_embedding_circuit_failure_threshold,
                recovery_timeout=config.ml_embedding_circuit_recovery_timeout,
                on_state_change=self._on_circuit_state_change,
            ),
            metrics_collector=metrics_collector,
        )

        self.vector_index = InMemoryVectorIndex(
            embedding_provider=self.embedding_provider,
            dimension=config.ml_vector_dimension,
            max_concurrency=config.ml_search_index_concurrency,
        )
        self.semantic_provider: SemanticSearchProvider = VectorIndexSemanticProvider(self.vector_index)

        self.lexical_provider = lexical_provider or OpenSearchLexicalProvider(
            hosts=config.opensearch_hosts,
            index_name=config.ml_opensearch_index,
            username=config.ml_opensearch_username,
            password=config.ml_opensearch_password,
            verify_certs=config.ml_opensearch_verify_certs,
            ssl_assert_hostname=config.ml_opensearch_ssl_assert_hostname,
            ssl_show_warn=config.ml_opensearch_ssl_show_warn,
        )
        self.lexical_indexer: Optional[DocumentIndexer] = (
            self.lexical_provider if isinstance(self.lexical_provider, DocumentIndexer) else None
        )

        if query_rewriter is not None:
            self.query_rewriter = query_rewriter
        elif config.ml_query_rewrite_enabled:
            self.query_rewriter = OllamaQueryRewriter(
                base_url=config.ml_ollama_url,
                model=config.ml_ollama_model,
                timeout=config.ml_ollama_timeout_seconds,
                circuit_breaker=CircuitBreaker(
                    name="query_rewriter",
                    failure_threshold=3,
                    recovery_timeout=config.ml_embedding_circuit_recovery_timeout,
                    on_state_change=self._on_circuit_state_change,
                ),
            )
        else:
            self.query_rewriter = PassthroughQueryRewriter()

        self.fusion_algorithm = fusion_algorithm or create_fusion_algorithm(
            config.ml_search_fusion_algorithm, k=config.ml_search_rrf_k
        )

    def _on_circuit_state_change(self, name: str, state: CircuitBreakerState) -> None:
        if self.metrics_collector is not None:
            self.metrics_collector.record_circuit_state(name, state.value)

    async def initialize(self):
        """Prepare backends and optionally seed sample data.

        A lexical backend that is down at startup is logged, not fatal: its
        searches degrade until it comes back.
        """
        initialize = getattr(self.lexical_provider, "initialize", None)
        if initialize is not None:
            try:
                await initialize()
            except SearchServiceError as e:
                logger.error("Lexical backend initialization failed", error=str(e))

        if self.config.ml_search_seed_sample_data:
            await self.seed_sample_data()

        logger.info("Search manager initialized successfully")

    async def seed_sample_data(self) -> IndexingResult:
        """Index the bundled sample documents into both backends."""
        result = await self.index_documents(SAMPLE_DOCUMENTS)
        logger.info(
            "Sample data initialization completed",
            indexed=len(result.indexed),
            lexical_failures=len(result.lexical_failures),
            semantic_failures=len(result.semantic_failures)
        )
        return result

    async def search(
        self,
        query: str,
        max_results: int = 10,
        lexical_weight: float = 0.5,
        semantic_weight: float = 0.5
    ) -> HybridSearchResult:
        """Perform hybrid search.

        Never fails because of a backend: degraded sources contribute no
        results, report a count of zero and are listed in
        ``degraded_sources``.
        """
        if not query or not query.strip():
            raise ValueError("Query cannot be blank")
        if max_results < 1:
            raise ValueError("max_results must be at least 1")
        for weight in (lexical_weight, semantic_weight):
            if not 0 <= weight <= MAX_WEIGHT:
                raise ValueError(f"Weights must be between 0 and {MAX_WEIGHT:g}, got {weight}")

        start_time = time.time()
        rewritten_query = await self._rewrite(query)

        (lexical_results, lexical_degraded), (semantic_results, semantic_degraded) = await asyncio.gather(
            self._run_branch(self.lexical_provider, rewritten_query, max_results),
            self._run_branch(self.semantic_provider, rewritten_query, max_results),
        )

        fused_results = self.fusion_algorithm.fuse_results(
            lexical_results=lexical_results,
            semantic_results=semantic_results,
            lexical_weight=lexical_weight,
            semantic_weight=semantic_weight
        )

        degraded_sources = []
        if lexical_degraded:
            degraded_sources.append(self.lexical_provider.source)
        if semantic_degraded:
            degraded_sources.append(self.semantic_provider.source)

        duration = time.time() - start_time
        if self.metrics_collector is not None:
            self.metrics_collector.record_search("hybrid", duration)
            for source in degraded_sources:
                self.metrics_collector.record_degraded_branch(source)

        log_performance(
            "hybrid_search",
            duration * 1000,
            results_count=len(fused_results),
            lexical_count=len(lexical_results),
            semantic_count=len(semantic_results),
            degraded_sources=degraded_sources
        )

        return HybridSearchResult(
            original_query=query,
            rewritten_query=rewritten_query,
            results=fused_results,
            lexical_results_count=len(lexical_results),
            semantic_results_count=len(semantic_results),
            degraded_sources=degraded_sources
        )

    async def lexical_search(self, query: str, max_results: int = 10) -> List[Document]:
        """Lexical-only search; degrades to an empty list."""
        start_time = time.time()
        results, _ = await self._run_branch(self.lexical_provider, query, max_results)
        if self.metrics_collector is not None:
            self.metrics_collector.record_search("lexical", time.time() - start_time)
        return results

    async def semantic_search(self, query: str, max_results: int = 10) -> List[Document]:
        """Semantic-only search; degrades to an empty list."""
        start_time = time.time()
        results, _ = await self._run_branch(self.semantic_provider, query, max_results)
        if self.metrics_collector is not None:
            self.metrics_collector.record_search("semantic", time.time() - start_time)
        return results

    async def _rewrite(self, query: str) -> str:
        try:
            rewritten = await self.query_rewriter.rewrite(query)
        except Exception as e:
            logger.warning("Query rewriter raised, using original query", query=query, error=str(e))
            return query
        return rewritten if rewritten and rewritten.strip() else query

    async def _run_branch(
        self,
        provider: Any,
        query: str,
        max_results: int
    ) -> Tuple[List[Document], bool]:
        """Run one provider under the configured timeout.

        Returns ``(documents, degraded)``.
        """
        source = provider.source
        try:
            documents = await asyncio.wait_for(
                provider.search(query, max_results),
                timeout=self.provider_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Search provider timed out",
                source=source,
                timeout_seconds=self.provider_timeout
            )
            return [], True
        except SearchServiceError as e:
            logger.error("Search provider failed", source=source, error=str(e))
            return [], True
        except Exception:
            logger.exception("Search provider raised unexpectedly", source=source)
            return [], True

        return list(documents)[:max_results], False

    async def index_documents(self, documents: Sequence[Document]) -> IndexingResult:
        """Index documents into the lexical backend and the vector index concurrently."""
        if not documents:
            return IndexingResult()

        report, lexical_failures = await asyncio.gather(
            self.vector_index.upsert_many(documents),
            self._index_lexical(documents),
        )

        indexed = [
            document_id for document_id in report.indexed
            if document_id not in lexical_failures
        ]
        result = IndexingResult(
            indexed=indexed,
            lexical_failures=lexical_failures,
            semantic_failures=dict(report.failed)
        )

        if self.metrics_collector is not None:
            self.metrics_collector.record_vector_index_operation("upsert", len(self.vector_index))

        logger.info(
            "Documents indexed",
            requested=len(documents),
            indexed=len(result.indexed),
            lexical_failures=len(result.lexical_failures),
            semantic_failures=len(result.semantic_failures)
        )
        return result

    async def _index_lexical(self, documents: Sequence[Document]) -> Dict[str, str]:
        if self.lexical_indexer is None:
            return {}
        try:
            return await self.lexical_indexer.index_documents(documents)
        except SearchServiceError as e:
            logger.error("Lexical indexing failed", count=len(documents), error=str(e))
            return {document.id: str(e) for document in documents}

    async def remove_documents(self, ids: Sequence[str]) -> int:
        """Remove documents from both backends.

        Returns the number of entries removed from the vector index. The
        lexical backend goes first: if it raises ``SearchProviderError`` the
        vector index is left untouched, so a failed delete can be retried
        without the backends disagreeing.
        """
        if self.lexical_indexer is not None:
            await self.lexical_indexer.delete_documents(ids)

        removed = self.vector_index.delete(ids)

        if self.metrics_collector is not None:
            self.metrics_collector.record_vector_index_operation("delete", len(self.vector_index))

        logger.info("Documents removed from index", requested=len(ids), removed=removed)
        return removed

    async def get_index_stats(self) -> Dict[str, Any]:
        """Get vector index statistics."""
        return self.vector_index.stats()

    async def health_check(self) -> Dict[str, bool]:
        """Report backend health; the vector index is in-process and always up."""
        lexical_healthy = True
        health_check = getattr(self.lexical_provider, "health_check", None)
        if health_check is not None:
            lexical_healthy = await health_check()

        return {"vector_index": True, "lexical": lexical_healthy}

    async def cleanup(self):
        """Close clients owned by the manager's collaborators."""
        for component in (self.embedding_provider, self.lexical_provider, self.query_rewriter):
            close = getattr(component, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                logger.error("Search manager cleanup failed", component=type(component).__name__, error=str(e))

        logger.info("Search manager cleanup completed")
