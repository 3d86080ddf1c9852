"""Semantic search backed by the in-memory vector index."""

from typing import List

import structlog

from libs.common.errors import EmbeddingError, SearchProviderError
from libs.common.models import Document
from libs.vector_store.base import VectorStore
from .base import SemanticSearchProvider

logger = structlog.get_logger("search_service.semantic")


class VectorIndexSemanticProvider(SemanticSearchProvider):
    """Answers semantic queries from a ``VectorStore``."""

    def __init__(self, vector_store: VectorStore):
        self.vector_store = vector_store

    async def search(self, query: str, max_results: int) -> List[Document]:
        try:
            documents = await self.vector_store.query(query, max_results)
        except EmbeddingError as e:
            raise SearchProviderError(self.source, str(e), e) from e

        logger.info("Semantic search completed", results_count=len(documents))
        return documents
