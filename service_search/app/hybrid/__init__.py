"""Hybrid search orchestration.

``SearchManager`` runs the lexical and semantic providers side by side and
merges their ranked lists with a rank fusion algorithm.
"""
