"""Embedding provider contract consumed by the vector index."""

from abc import ABC, abstractmethod

import numpy as np


class EmbeddingProvider(ABC):
    """Converts text into a fixed-dimension embedding vector.

    Implementations must be deterministic for identical text and keep the
    same dimension for the lifetime of the process. Failures raise
    ``libs.common.errors.EmbeddingError``.
    """

    @abstractmethod
    async def embed(self, text: str) -> np.ndarray:
        """Embed ``text`` and return a 1-D float vector."""
        pass
