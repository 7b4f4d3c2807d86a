"""Domain Layer: interfaces, value objects, records, events and errors.

Has no dependencies on the infrastructure or core layers.
"""
