"""Vector store abstractions and the in-memory vector index.

Primary components:
- ``base``: abstract ``VectorStore`` interface and common exceptions.
- ``embedding``: the ``EmbeddingProvider`` capability interface.
- ``memory``: exact, brute-force ``InMemoryVectorIndex``.
"""
