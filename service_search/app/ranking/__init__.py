"""Rank fusion for hybrid search.

Contents
- ``fusion``: positional weighted fusion and reciprocal rank fusion
"""
