"""Domain Event definitions.

Represents significant occurrences within the resilience layer that other
parts of the system might react to (retries scheduled, operations failing).
"""
