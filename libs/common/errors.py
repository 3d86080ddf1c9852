"""Exception hierarchy for the search service.

Collaborators raise these instead of swallowing failures; the search manager
decides whether a failure degrades one branch of a request or is surfaced to
the caller.
"""

from typing import Optional


class SearchServiceError(Exception):
    """Base exception for search service operations."""
    pass


class EmbeddingError(SearchServiceError):
    """Embedding generation failed or returned an unusable vector.

    ``retryable`` is False when repeating the call cannot help, e.g. a
    rejected request or a malformed response.
    """

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


class SearchProviderError(SearchServiceError):
    """A lexical or semantic provider could not answer a query."""

    def __init__(self, source: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{source} provider failed: {message}")
        self.source = source
        self.cause = cause


class QueryRewriteError(SearchServiceError):
    """The query rewriter could not produce a rewritten query."""
    pass
