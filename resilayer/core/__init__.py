"""Core Application Layer: Orchestrates the resilience components.

Composes the rate limiter, cache, retry executor and metrics aggregator
into guarded operations, and provides maintenance and health services.
"""
