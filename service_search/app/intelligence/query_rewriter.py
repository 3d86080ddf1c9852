"""Query rewriting for hybrid search.

The rewriter asks a local LLM (Ollama ``/api/generate``) to expand the user's
query with synonyms and clearer wording before it is sent to both providers.
Rewriting is best-effort: any failure falls back to the original query.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from libs.common.errors import QueryRewriteError
from ..adapters.circuit_breaker import CircuitBreaker, CircuitBreakerError

logger = structlog.get_logger("search_service.query_rewriter")

QUERY_REWRITE_PROMPT = (
    "You are a search query optimization assistant. Improve the search query "
    "below for retrieval by both a keyword (lexical) engine and a meaning-based "
    "(semantic) engine.\n"
    "\n"
    "Original query: {query}\n"
    "\n"
    "Write an improved version of the query that:\n"
    "1. Preserves the original intent\n"
    "2. Adds relevant synonyms and related terms for keyword matching\n"
    "3. Clarifies ambiguous terms for semantic matching\n"
    "4. Reads as natural language\n"
    "\n"
    "Return only the improved query, without explanation or formatting."
)


class QueryRewriter(ABC):
    """Rewrites a query before dispatch. Must never raise."""

    @abstractmethod
    async def rewrite(self, query: str) -> str:
        """Return the rewritten query, or ``query`` unchanged on failure."""
        pass


class PassthroughQueryRewriter(QueryRewriter):
    """Used when rewriting is disabled."""

    async def rewrite(self, query: str) -> str:
        return query


class OllamaQueryRewriter(QueryRewriter):
    """LLM query rewriter on a local Ollama server."""

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:11434",
        model: str = "llama3.1:latest",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        circuit_breaker: Optional[CircuitBreaker] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name="query_rewriter", failure_threshold=3, recovery_timeout=30.0
        )

    async def _generate(self, query: str) -> str:
        response = await self.http_client.post(
            f"{self.base_url}/api/generate",
            json={
                "model": self.model,
                "prompt": QUERY_REWRITE_PROMPT.format(query=query),
                "stream": False
            }
        )
        if response.status_code != 200:
            raise QueryRewriteError(f"LLM returned status {response.status_code}")

        payload = response.json()
        if not isinstance(payload, dict):
            raise QueryRewriteError("LLM returned an unexpected payload")

        rewritten = str(payload.get("response") or "").strip().strip('"').strip()
        if not rewritten:
            raise QueryRewriteError("LLM returned an empty rewrite")
        return rewritten

    async def rewrite(self, query: str) -> str:
        try:
            rewritten = await self.circuit_breaker.call(self._generate, query)
        except (QueryRewriteError, CircuitBreakerError, httpx.HTTPError, ValueError) as e:
            logger.warning("Query rewrite failed, using original query", query=query, error=str(e))
            return query

        logger.info("Query rewritten", original_query=query, rewritten_query=rewritten)
        return rewritten

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()
