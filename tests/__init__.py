"""Tests for the hybrid search service.

Backends are replaced with deterministic fakes from ``conftest``: a
bag-of-words embedding provider and a keyword-matching lexical provider.
HTTP clients are exercised against ``httpx.MockTransport``.
"""
