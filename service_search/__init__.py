"""Hybrid search service."""
