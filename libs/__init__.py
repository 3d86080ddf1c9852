"""Shared libraries for the hybrid search service.

Subpackages:
- ``libs.common``: configuration, logging, metrics, errors, and document models.
- ``libs.vector_store``: embedding provider contract and the in-memory vector index.

Notes:
- Avoid service-specific logic; keep modules cohesive and broadly useful.
"""
