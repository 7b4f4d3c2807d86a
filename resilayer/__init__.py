"""resilayer: resilience layer for request-handling services.

Bounded TTL/LRU caching, sliding-window rate limiting, retry with backoff
and rolling metrics, wired together through explicitly constructed
instances (no process-wide shared state).
"""

__version__ = "1.0.0"
