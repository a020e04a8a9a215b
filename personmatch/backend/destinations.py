"""Where materialized match results go.

Each destination executes a composed statement on a connection the caller
already holds inside a transaction, and reports how many rows it wrote.
"""

import csv
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from sqlalchemy import Column, MetaData, String, Table, func, inspect, select
from sqlalchemy.engine import Connection
from sqlalchemy.sql.expression import Executable
from sqlalchemy.types import NullType

from .exceptions import DestinationError

IfExists = Literal["fail", "replace", "append"]


@dataclass
class WriteResult:
    """Outcome of a destination write."""

    row_count: int
    rows: Optional[List[Dict[str, Any]]] = None


class Destination(ABC):
    """Target for the rows of a materialized plan."""

    @abstractmethod
    def write(self, connection: Connection, statement: Executable) -> WriteResult:
        """Execute ``statement`` and deliver its rows.

        Raises:
            DestinationError: If the destination refuses the write
            sqlalchemy.exc.SQLAlchemyError: If the backing engine fails
        """

    @abstractmethod
    def describe(self) -> str:
        """Short label for logs."""


@dataclass
class TableDestination(Destination):
    """Write results into a database table with INSERT ... SELECT.

    Rows never leave the database. The table is created from the plan's
    column types when it does not exist.

    Attributes:
        name: Table name
        schema: Optional schema name
        if_exists: 'fail' (default), 'replace' (drop and recreate) or
            'append' (insert into the existing table)
    """

    name: str
    schema: Optional[str] = None
    if_exists: IfExists = "fail"

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise DestinationError("Table destination needs a non-empty name")
        if self.if_exists not in ("fail", "replace", "append"):
            raise DestinationError(
                f"Invalid if_exists '{self.if_exists}'. Must be fail, replace or append"
            )

    def write(self, connection: Connection, statement: Executable) -> WriteResult:
        table = self._table_for(statement)
        exists = inspect(connection).has_table(self.name, schema=self.schema)

        if exists and self.if_exists == "fail":
            raise DestinationError(
                f"Destination table {self.describe()} already exists; "
                "use if_exists='replace' or 'append'"
            )
        if exists and self.if_exists == "replace":
            table.drop(connection)
            exists = False
        if not exists:
            table.create(connection)

        rows_before = self._count(connection, table) if exists else 0
        result = connection.execute(
            table.insert().from_select([c.name for c in table.columns], statement)
        )
        row_count = result.rowcount
        if row_count is None or row_count < 0:
            # Some drivers do not report rowcount for INSERT ... SELECT
            row_count = self._count(connection, table) - rows_before
        return WriteResult(row_count=row_count)

    def describe(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name

    def _table_for(self, statement: Executable) -> Table:
        columns = []
        for column in statement.selected_columns:
            # Untyped columns (plain table() sources, bare NULLs) fall back to text
            column_type = String() if isinstance(column.type, NullType) else column.type
            columns.append(Column(column.name, column_type))
        return Table(self.name, MetaData(), *columns, schema=self.schema)

    @staticmethod
    def _count(connection: Connection, table: Table) -> int:
        return connection.execute(select(func.count()).select_from(table)).scalar_one()


@dataclass
class MemoryDestination(Destination):
    """Fetch results into the calling process as a list of dicts."""

    rows: List[Dict[str, Any]] = field(default_factory=list, init=False)

    def write(self, connection: Connection, statement: Executable) -> WriteResult:
        rows = [dict(row) for row in connection.execute(statement).mappings()]
        self.rows = rows
        return WriteResult(row_count=len(rows), rows=rows)

    def describe(self) -> str:
        return "memory"


@dataclass
class CsvDestination(Destination):
    """Stream results to a CSV file with a header row. NULL is written as an empty field.

    Rows go to a temporary file beside the target, which replaces the target
    only after the last row is written. A failed write leaves any existing
    file untouched.
    """

    path: Union[str, Path]
    chunk_size: int = 10_000

    def write(self, connection: Connection, statement: Executable) -> WriteResult:
        path = Path(self.path)
        if not path.parent.exists():
            raise DestinationError(f"Directory for CSV destination does not exist: {path.parent}")

        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            row_count = 0
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
                result = connection.execution_options(stream_results=True).execute(statement)
                writer = csv.writer(f)
                writer.writerow(list(result.keys()))
                for chunk in result.partitions(self.chunk_size):
                    writer.writerows(chunk)
                    row_count += len(chunk)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return WriteResult(row_count=row_count)

    def describe(self) -> str:
        return str(self.path)
