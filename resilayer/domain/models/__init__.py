"""Value objects and records shared by the resilience components."""
