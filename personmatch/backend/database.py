"""Scoped engine creation and transaction handling.

The engine is never held in module state: callers open it with
``open_engine`` (or build one with ``create_backend_engine``), pass it or one
of its connections into the matching calls, and dispose of it themselves.
"""

from contextlib import contextmanager
from typing import Any, Generator, Union

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from personmatch.logging import get_logger

from .exceptions import DatabaseConnectionError
from .functions import register_sql_functions

logger = get_logger(__name__, component="backend")

Bind = Union[Engine, Connection]


def create_backend_engine(database_url: str, **engine_kwargs: Any) -> Engine:
    """Create an engine ready to run match plans.

    For SQLite this also registers the similarity functions and switches the
    pysqlite driver to explicit BEGIN so transactions and savepoints behave.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite://`` or ``postgresql+psycopg://...``
        **engine_kwargs: Passed through to ``sqlalchemy.create_engine``

    Raises:
        DatabaseConnectionError: If the URL is invalid or the first connection fails
    """
    if not database_url or not isinstance(database_url, str):
        raise DatabaseConnectionError("Database URL must be a non-empty string")

    try:
        url = make_url(database_url)
        engine = create_engine(url, pool_pre_ping=True, **engine_kwargs)
    except (ArgumentError, ImportError, SQLAlchemyError) as e:
        raise DatabaseConnectionError(f"Failed to create engine: {e}") from e

    if url.get_backend_name() == "sqlite":
        _configure_sqlite(engine)

    _validate_connection(engine)

    logger.info(
        "Database engine opened",
        extra={
            "event": "backend.engine.opened",
            "database_url": redact_url(database_url),
            "dialect": engine.dialect.name,
        },
    )
    return engine


@contextmanager
def open_engine(database_url: str, **engine_kwargs: Any) -> Generator[Engine, None, None]:
    """Context manager yielding an engine that is disposed on exit.

    Example:
        >>> with open_engine("sqlite://") as engine:
        ...     with engine.connect() as conn:
        ...         result = handle.materialize(conn, MemoryDestination())
    """
    engine = create_backend_engine(database_url, **engine_kwargs)
    try:
        yield engine
    finally:
        engine.dispose()
        logger.info(
            "Database engine disposed",
            extra={"event": "backend.engine.disposed", "dialect": engine.dialect.name},
        )


@contextmanager
def transaction(bind: Bind) -> Generator[Connection, None, None]:
    """Yield a connection inside a transaction that rolls back on error.

    An Engine gets a fresh connection and transaction. A Connection already
    inside a transaction gets a savepoint, so the caller's outer transaction
    is left for the caller to commit.
    """
    if isinstance(bind, Engine):
        with bind.begin() as connection:
            yield connection
    elif bind.in_transaction():
        with bind.begin_nested():
            yield bind
    else:
        with bind.begin():
            yield bind


def _configure_sqlite(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself; pysqlite's implicit transactions break savepoints
        dbapi_connection.isolation_level = None
        register_sql_functions(dbapi_connection)

    @event.listens_for(engine, "begin")
    def on_begin(connection):
        connection.exec_driver_sql("BEGIN")


def _validate_connection(engine: Engine) -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        engine.dispose()
        raise DatabaseConnectionError(f"Failed to validate database connection: {e}") from e


def redact_url(url: str) -> str:
    """Render a database URL with its password masked."""
    try:
        return make_url(url).render_as_string(hide_password=True)
    except ArgumentError:
        return "<invalid url>"
