"""Time sources: the real system clock and a manually driven clock for tests."""
