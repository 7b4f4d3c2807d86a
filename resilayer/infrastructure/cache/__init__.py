"""Caching Service Implementation.

Provides the concrete in-memory CacheStore: bounded size, per-entry TTL
and least-recently-used eviction.
Bounded Context: Cache Management
"""
