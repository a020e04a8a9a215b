"""Execution of composed match plans.

This is the only place a match plan reaches the backing engine. Failures
from the engine are wrapped in BackingEngineError and never retried.
"""

import logging
import time
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from personmatch.backend.database import Bind, transaction
from personmatch.backend.destinations import Destination
from personmatch.backend.exceptions import BackingEngineError, DestinationError
from personmatch.logging import get_logger, log_context
from personmatch.utils.timestamps import format_timestamp, utc_now

from .models import ComposedMatch, MaterializedMatch

logger = get_logger(__name__, component="materialize")


def materialize(
    bind: Bind,
    handle: ComposedMatch,
    destination: Destination,
    logger_instance: Optional[logging.Logger] = None,
) -> MaterializedMatch:
    """Execute a composed match and deliver its rows to ``destination``.

    The write runs in its own transaction when ``bind`` is an Engine or an
    idle Connection, and in a savepoint when the Connection is already in a
    transaction. Either way a failure leaves no partial rows behind.

    Args:
        bind: Engine or Connection of the backing database
        handle: Plan returned by ``match``
        destination: Where the rows go

    Returns:
        MaterializedMatch with the row count and timing

    Raises:
        TypeError: If ``handle`` is not a ComposedMatch
        DestinationError: If the destination refuses the write
        BackingEngineError: If the backing engine fails
    """
    if not isinstance(handle, ComposedMatch):
        raise TypeError(f"Expected a ComposedMatch, got {type(handle).__name__}")

    log = logger_instance or logger

    with log_context(match_id=handle.fingerprint, source_a=handle.source_a, source_b=handle.source_b):
        log.info(
            f"Materializing match into {destination.describe()}",
            extra={
                "event": "match.materialize.started",
                "destination": destination.describe(),
                "output_type": handle.output_type.value,
            },
        )

        materialized_at = utc_now()
        started = time.perf_counter()
        try:
            with transaction(bind) as connection:
                result = destination.write(connection, handle.statement)
        except DestinationError as e:
            log.error(
                f"Destination rejected match results: {e}",
                extra={
                    "event": "match.materialize.failed",
                    "destination": destination.describe(),
                    "error_type": type(e).__name__,
                },
            )
            raise
        except (SQLAlchemyError, OSError) as e:
            log.error(
                f"Backing engine failed while materializing match: {e}",
                extra={
                    "event": "match.materialize.failed",
                    "destination": destination.describe(),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            raise BackingEngineError(
                f"Failed to materialize match {handle.fingerprint} into "
                f"{destination.describe()}: {e}",
                original=e,
            ) from e

        duration = time.perf_counter() - started
        log.info(
            f"Match materialized: {result.row_count} row(s) in {duration:.3f}s",
            extra={
                "event": "match.materialize.completed",
                "destination": destination.describe(),
                "row_count": result.row_count,
                "duration_seconds": round(duration, 3),
                "materialized_at": format_timestamp(materialized_at),
            },
        )

    return MaterializedMatch(
        composed=handle,
        destination=destination,
        row_count=result.row_count,
        materialized_at=materialized_at,
        duration_seconds=duration,
        rows=result.rows,
    )
