"""Resilience Implementations.

Contains services for rate limiting callers with a sliding window and
retrying fallible operations with exponential backoff.
Bounded Context: API Resilience
"""
