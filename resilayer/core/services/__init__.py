"""Application services built on the resilience components."""
