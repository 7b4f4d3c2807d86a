"""Domain interfaces implemented by the infrastructure layer."""
