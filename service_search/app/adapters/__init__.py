"""Resilience adapters for outbound calls (circuit breaker, retry)."""
