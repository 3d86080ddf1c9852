"""Search service application.

Layout:
- ``api``: HTTP endpoints for search, indexing and index stats.
- ``hybrid``: the ``SearchManager`` that rewrites, fans out and fuses.
- ``ranking``: rank fusion algorithms.
- ``retrievers``: lexical (OpenSearch) and semantic (vector index) providers.
- ``encoders``: client for the remote embedding service.
- ``intelligence``: LLM query rewriting.
- ``adapters``: circuit breaker and retry policies for remote calls.
- ``bootstrap``: sample documents for local runs.
- ``runtime``: service-local metrics.
"""
