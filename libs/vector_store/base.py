"""Base vector store interface.

Defines the contract the search service depends on, independent of the
backing implementation. Mutations and vector lookups are synchronous;
operations that need an embedding are asynchronous because the embedding
provider is a remote call.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

from libs.common.errors import SearchServiceError
from libs.common.models import Document


@dataclass
class BatchUpsertReport:
    """Outcome of a batch upsert.

    ``indexed`` lists ids stored in input order; ``failed`` maps each id that
    could not be embedded to the error message.
    """
    indexed: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class VectorStore(ABC):
    """Abstract base class for vector stores.

    Implementations must overwrite on duplicate ids, treat deletes of unknown
    ids as no-ops, and rank by cosine similarity best-first.
    """

    @abstractmethod
    def upsert(self, document: Document, embedding: np.ndarray) -> None:
        """Insert or overwrite the entry for ``document.id``."""
        pass

    @abstractmethod
    async def upsert_many(self, documents: Sequence[Document]) -> BatchUpsertReport:
        """Embed and store documents, reporting per-document failures."""
        pass

    @abstractmethod
    def delete(self, ids: Iterable[str]) -> int:
        """Remove entries; returns the number actually removed."""
        pass

    @abstractmethod
    def similarity_search(
        self,
        query_vector: np.ndarray,
        top_k: int
    ) -> List[Tuple[Document, float]]:
        """Return ``(document, similarity)`` pairs, best-first."""
        pass

    @abstractmethod
    async def query(self, query_text: str, top_k: int) -> List[Document]:
        """Embed ``query_text`` and return the ``top_k`` closest documents."""
        pass


class VectorStoreError(SearchServiceError):
    """Base exception for vector store operations."""
    pass


class VectorDimensionError(VectorStoreError):
    """Vector does not match the dimension the store was configured with."""
    pass
