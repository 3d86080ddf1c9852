"""API subpackage for the search service.

Routers expose hybrid, lexical-only and semantic-only search plus document
(de)indexing. The transport layer stays thin and delegates to
``SearchManager``.
"""
