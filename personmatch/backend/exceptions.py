"""Errors raised at the boundary with the backing database.

All backend exceptions inherit from BackendError so callers can catch them
with a single except clause.
"""

from typing import Optional


class BackendError(Exception):
    """Base exception for backing-database failures."""

    pass


class DatabaseConnectionError(BackendError):
    """Raised when an engine cannot be created or its first connection fails.

    Examples:
    - Malformed database URL
    - Driver not installed
    - Server unreachable or credentials rejected
    """

    pass


class BackingEngineError(BackendError):
    """Raised when the backing engine fails while executing a plan.

    The driver-level exception is kept as ``original`` (and as ``__cause__``)
    so the caller sees exactly what the engine reported. Nothing is retried.
    """

    def __init__(self, message: str, original: Optional[BaseException] = None):
        self.original = original
        super().__init__(message)


class DestinationError(BackendError):
    """Raised when a destination cannot accept results.

    Examples:
    - Target table exists and if_exists='fail'
    - Output file directory does not exist
    """

    pass
