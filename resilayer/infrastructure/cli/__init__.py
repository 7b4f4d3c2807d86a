"""Console presentation helpers built on rich."""
