"""Exceptions raised at the ingestion boundary."""


class ConfigurationError(Exception):
    """Raised when a protocol or parser lookup cannot be satisfied."""
    pass


class MalformedRecordError(ValueError):
    """Raised when a parsed record carries an amount that cannot enter the index."""
    pass
