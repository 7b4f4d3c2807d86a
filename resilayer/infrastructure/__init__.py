"""Infrastructure Layer: Contains concrete implementations and adapters.

Implements the interfaces defined in the domain layer (clocks, cache
stores) and provides the rate limiter, retry executor, metrics aggregator,
logging, configuration and console display.
"""
