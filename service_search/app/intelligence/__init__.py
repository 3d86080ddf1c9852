"""Query understanding: LLM-based query rewriting."""
