"""In-memory vector index.

Exact, brute-force nearest-neighbor search over a process-local map of
``document id -> (document, embedding)``. Ranking is by cosine similarity.

Concurrency
- The map is guarded by a ``threading.Lock`` so upserts, deletes and the
  snapshot taken by queries are atomic per key.
- Entries are immutable and their vectors are read-only copies, so a query
  running next to a mutation sees either the old or the new entry, never a
  mix of the two.
- Embedding and scoring happen outside the lock.
"""

import asyncio
import math
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import structlog

from libs.common.models import Document
from .base import BatchUpsertReport, VectorDimensionError, VectorStore
from .embedding import EmbeddingProvider

logger = structlog.get_logger("vector_store.memory")


def cosine_similarity(a: Any, b: Any) -> float:
    """Cosine similarity ``dot(a, b) / (|a| * |b|)``.

    Returns ``0.0`` instead of raising when either vector has zero magnitude,
    the shapes differ, or the result is not finite, so one malformed entry
    cannot abort a query over the whole index.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.ndim != 1 or a.shape != b.shape:
        return 0.0

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    if not math.isfinite(similarity):
        return 0.0
    return similarity


@dataclass(frozen=True)
class IndexEntry:
    """A stored document and its read-only embedding."""
    document: Document
    vector: np.ndarray


def _freeze_vector(embedding: Any) -> np.ndarray:
    vector = np.array(embedding, dtype=np.float64, copy=True)
    vector.flags.writeable = False
    return vector


class InMemoryVectorIndex(VectorStore):
    """Thread-safe in-memory vector index.

    Parameters
    - embedding_provider: Used by ``upsert_many`` and ``query``
    - dimension: Expected vector dimension; ``None`` or ``0`` accepts any
      vector and lets mismatches score ``0.0`` at query time
    - max_concurrency: Upper bound on concurrent embedding calls during
      ``upsert_many``

    Equal similarities keep insertion order; overwriting an id keeps its
    original position.
    """

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        dimension: Optional[int] = None,
        max_concurrency: int = 4
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.embedding_provider = embedding_provider
        self.dimension = dimension or None
        self.max_concurrency = max_concurrency
        self._entries: Dict[str, IndexEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, document_id: object) -> bool:
        with self._lock:
            return document_id in self._entries

    def get(self, document_id: str) -> Optional[IndexEntry]:
        """Return the entry stored for ``document_id``, if any."""
        with self._lock:
            return self._entries.get(document_id)

    def ids(self) -> List[str]:
        """Stored ids in iteration order."""
        with self._lock:
            return list(self._entries)

    def _snapshot(self) -> List[IndexEntry]:
        with self._lock:
            return list(self._entries.values())

    def upsert(self, document: Document, embedding: Any) -> None:
        """Insert or overwrite the entry for ``document.id`` (last write wins)."""
        vector = _freeze_vector(embedding)
        if self.dimension is not None and vector.shape != (self.dimension,):
            raise VectorDimensionError(
                f"Expected vector of dimension {self.dimension} for document "
                f"{document.id!r}, got shape {vector.shape}"
            )

        entry = IndexEntry(document=document, vector=vector)
        with self._lock:
            self._entries[document.id] = entry

        logger.debug("Vector upserted", document_id=document.id, dimension=vector.size)

    async def upsert_many(self, documents: Sequence[Document]) -> BatchUpsertReport:
        """Embed and upsert documents.

        Each document is embedded once from ``Document.embedding_text()``.
        Embeddings run concurrently up to ``max_concurrency``; documents are
        stored in input order once all embeddings have settled. A failed
        document is recorded in the report and does not stop the others.
        """
        report = BatchUpsertReport()
        if not documents:
            return report

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def embed_document(document: Document) -> np.ndarray:
            async with semaphore:
                return await self.embedding_provider.embed(document.embedding_text())

        outcomes = await asyncio.gather(
            *(embed_document(document) for document in documents),
            return_exceptions=True
        )

        for document, outcome in zip(documents, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                report.failed[document.id] = str(outcome)
                logger.error("Document embedding failed", document_id=document.id, error=str(outcome))
                continue

            try:
                self.upsert(document, outcome)
            except VectorDimensionError as e:
                report.failed[document.id] = str(e)
                logger.error("Document vector rejected", document_id=document.id, error=str(e))
                continue

            report.failed.pop(document.id, None)
            if document.id not in report.indexed:
                report.indexed.append(document.id)

        logger.info(
            "Batch upsert completed",
            requested=len(documents),
            indexed=len(report.indexed),
            failed=len(report.failed)
        )
        return report

    def delete(self, ids: Iterable[str]) -> int:
        """Remove entries; unknown ids are ignored."""
        removed = 0
        with self._lock:
            for document_id in ids:
                if self._entries.pop(document_id, None) is not None:
                    removed += 1

        logger.debug("Vectors deleted", removed=removed)
        return removed

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()

    def similarity_search(
        self,
        query_vector: Any,
        top_k: int
    ) -> List[Tuple[Document, float]]:
        """Score every entry against ``query_vector`` and keep the best ``top_k``."""
        if top_k <= 0:
            return []

        entries = self._snapshot()
        if not entries:
            return []

        query = np.asarray(query_vector, dtype=np.float64)
        scored = [
            (entry.document, cosine_similarity(query, entry.vector))
            for entry in entries
        ]
        # sorted() is stable with reverse=True, so ties keep insertion order
        scored = sorted(scored, key=lambda pair: pair[1], reverse=True)
        return scored[:top_k]

    async def query(self, query_text: str, top_k: int) -> List[Document]:
        """Embed ``query_text`` and return the ``top_k`` most similar documents.

        An empty index returns ``[]`` without calling the embedding provider.
        Embedding failures propagate as ``EmbeddingError``.
        """
        if top_k <= 0 or len(self) == 0:
            return []

        query_vector = await self.embedding_provider.embed(query_text)
        return [document for document, _ in self.similarity_search(query_vector, top_k)]

    def stats(self) -> Dict[str, Any]:
        """Entry count and the vector dimensions currently stored."""
        entries = self._snapshot()
        return {
            "total_documents": len(entries),
            "dimensions": sorted({int(entry.vector.size) for entry in entries}),
            "configured_dimension": self.dimension,
            "by_type": _count_by(entries, "type"),
            "by_category": _count_by(entries, "category"),
        }


def _count_by(entries: List[IndexEntry], attribute: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for entry in entries:
        key = getattr(entry.document, attribute)
        counts[key] = counts.get(key, 0) + 1
    return counts
