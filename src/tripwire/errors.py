"""Shared error types for tripwire."""


class ConfigurationError(ValueError):
    """Invalid configuration supplied at construction time."""
