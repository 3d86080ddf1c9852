"""Capability interfaces for the providers consumed by the search manager.

Each interface has one job so tests can swap in deterministic fakes.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Sequence

from libs.common.models import Document


class LexicalSearchProvider(ABC):
    """Keyword search over the document collection."""

    source = "lexical"

    @abstractmethod
    async def search(self, query: str, max_results: int) -> List[Document]:
        """Return at most ``max_results`` documents, best-first.

        Raises ``SearchProviderError`` when the backend cannot answer.
        """
        pass


class SemanticSearchProvider(ABC):
    """Embedding-similarity search over the document collection."""

    source = "semantic"

    @abstractmethod
    async def search(self, query: str, max_results: int) -> List[Document]:
        """Return at most ``max_results`` documents, best-first.

        Raises ``SearchProviderError`` when the query cannot be answered.
        """
        pass


class DocumentIndexer(ABC):
    """Write side of a search backend."""

    @abstractmethod
    async def index_documents(self, documents: Sequence[Document]) -> Dict[str, str]:
        """Index documents; returns ``{document_id: error}`` for failures."""
        pass

    @abstractmethod
    async def delete_documents(self, ids: Sequence[str]) -> None:
        """Delete documents by id; unknown ids are ignored."""
        pass
