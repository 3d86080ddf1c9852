"""Embedding providers used by the vector index and semantic search."""
