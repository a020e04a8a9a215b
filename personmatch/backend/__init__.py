"""Boundary with the backing SQL engine.

Public API:
    - create_backend_engine / open_engine: engines with similarity and translate functions registered
    - transaction: run work in a transaction or savepoint on a caller-owned bind
    - TableDestination, MemoryDestination, CsvDestination: result targets
    - BackendError, DatabaseConnectionError, BackingEngineError, DestinationError
"""

from .database import create_backend_engine, open_engine, redact_url, transaction
from .destinations import (
    CsvDestination,
    Destination,
    MemoryDestination,
    TableDestination,
    WriteResult,
)
from .exceptions import (
    BackendError,
    BackingEngineError,
    DatabaseConnectionError,
    DestinationError,
)
from .functions import jaro_winkler_similarity, levenshtein, register_sql_functions, translate

__all__ = [
    # Engines
    "create_backend_engine",
    "open_engine",
    "redact_url",
    "transaction",
    "register_sql_functions",
    "levenshtein",
    "jaro_winkler_similarity",
    "translate",
    # Destinations
    "Destination",
    "TableDestination",
    "MemoryDestination",
    "CsvDestination",
    "WriteResult",
    # Exceptions
    "BackendError",
    "DatabaseConnectionError",
    "BackingEngineError",
    "DestinationError",
]
