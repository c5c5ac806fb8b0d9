class ExperimentError(Exception):
    """Base class for errors raised by the assignment engine."""


class ConfigurationError(ExperimentError, ValueError):
    """Bad variant/weight shape. Never retried."""


class NotFoundError(ExperimentError, LookupError):
    """Raised only where an operation requires the test or assignment to exist."""


class StorageError(ExperimentError):
    """Opaque failure reported by a storage backend."""
