"""Result fusion algorithms for hybrid search.

Each provider returns a best-first list of documents whose native scores are
not comparable across providers, so fusion works from rank positions only:
every item gets a rank-derived score, multiplied by its source weight, and
documents found by both providers sum their two contributions.

Algorithms are stateless and safe to share between concurrent requests.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Sequence

import structlog

from libs.common.models import Document, Provenance

logger = structlog.get_logger("search_service.fusion")

# Score lost per rank position by the positional algorithm
POSITION_DECAY = 0.1

# Upper bound on a source weight; keeps weighted sums far from float overflow
MAX_WEIGHT = 1000.0


@dataclass(frozen=True)
class RankedItem:
    """One provider's document at a given rank, with its weighted score."""
    document: Document
    rank: int
    score: float
    provenance: Provenance


@dataclass(frozen=True)
class FusedResult:
    """A document in the fused ranking."""
    document: Document
    score: float
    provenance: Provenance


def normalized_position_score(rank: int) -> float:
    """Map a zero-based rank to ``1 - rank * 0.1``, clamped to ``[0, 1]``."""
    return max(0.0, 1.0 - rank * POSITION_DECAY)


class RankFusionAlgorithm(ABC):
    """Base class for rank fusion algorithms.

    Subclasses only define ``position_score``; ranking, merging and ordering
    are shared.
    """

    name = "base"

    @abstractmethod
    def position_score(self, rank: int) -> float:
        """Unweighted score for a zero-based rank."""

    def rank_items(
        self,
        documents: Sequence[Document],
        provenance: Provenance,
        weight: float
    ) -> List[RankedItem]:
        """Score one provider's list.

        A document id repeated within the same list only counts at its best
        (first) rank.
        """
        items = []
        seen = set()
        for rank, document in enumerate(documents):
            if document.id in seen:
                continue
            seen.add(document.id)
            position_score = self.position_score(rank)
            items.append(RankedItem(
                document=document,
                rank=rank,
                score=position_score * weight if position_score else 0.0,
                provenance=provenance
            ))
        return items

    def fuse_results(
        self,
        lexical_results: Sequence[Document],
        semantic_results: Sequence[Document],
        lexical_weight: float = 0.5,
        semantic_weight: float = 0.5
    ) -> List[FusedResult]:
        """Merge two best-first lists into one ranking.

        Returns results sorted by descending score. Ties keep first-seen
        order: lexical items in list order, then semantic-only items.
        Raises ``ValueError`` for negative or non-finite weights.
        """
        for label, weight in (("lexical", lexical_weight), ("semantic", semantic_weight)):
            if not math.isfinite(weight) or weight < 0:
                raise ValueError(f"{label} weight must be a finite non-negative number, got {weight}")

        ranked = (
            self.rank_items(lexical_results, Provenance.LEXICAL, lexical_weight)
            + self.rank_items(semantic_results, Provenance.SEMANTIC, semantic_weight)
        )

        # id -> [document, score, provenance]; dicts keep first-seen order
        merged: Dict[str, list] = {}
        for item in ranked:
            existing = merged.get(item.document.id)
            if existing is None:
                merged[item.document.id] = [item.document, item.score, item.provenance]
            else:
                existing[1] += item.score
                existing[2] = Provenance.HYBRID

        fused = [
            FusedResult(document=document, score=score, provenance=provenance)
            for document, score, provenance in merged.values()
        ]
        fused.sort(key=lambda result: result.score, reverse=True)

        logger.info(
            "Fusion completed",
            algorithm=self.name,
            lexical_count=len(lexical_results),
            semantic_count=len(semantic_results),
            fused_count=len(fused),
            lexical_weight=lexical_weight,
            semantic_weight=semantic_weight
        )
        return fused


class PositionalWeightedFusion(RankFusionAlgorithm):
    """Linear positional decay: rank ``i`` scores ``max(0, 1 - 0.1 * i)``.

    The floor at zero keeps items ranked 10th or lower from subtracting from
    a document that the other provider ranked well.
    """

    name = "positional"

    def position_score(self, rank: int) -> float:
        return normalized_position_score(rank)


class ReciprocalRankFusion(RankFusionAlgorithm):
    """Reciprocal Rank Fusion: rank ``i`` scores ``1 / (k + i + 1)``."""

    name = "rrf"

    def __init__(self, k: float = 60.0):
        if k <= 0:
            raise ValueError("RRF k must be positive")
        self.k = k

    def position_score(self, rank: int) -> float:
        return 1.0 / (self.k + rank + 1)


def create_fusion_algorithm(algorithm: str = "positional", **params) -> RankFusionAlgorithm:
    """Create a fusion algorithm instance by name."""

    if algorithm == "positional":
        return PositionalWeightedFusion()

    elif algorithm == "rrf":
        k = params.get("k", 60.0)
        return ReciprocalRankFusion(k=k)

    else:
        raise ValueError(f"Unknown fusion algorithm: {algorithm}")
