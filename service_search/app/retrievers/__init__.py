"""Retrieval providers: lexical (OpenSearch) and semantic (vector index)."""
