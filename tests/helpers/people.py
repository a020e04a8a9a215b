"""Load person records from YAML fixtures into a SQLite backing database.

Each fixture source lists its columns, the field mapping onto canonical
fields and the rows. Used to build deterministic end-to-end scenarios.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from sqlalchemy import Column, MetaData, String, Table
from sqlalchemy.engine import Connection


def load_people_fixture(fixture_path: Path) -> Dict[str, Dict[str, Any]]:
    """Load record sources from a YAML fixture file.

    Returns:
        Dictionary mapping source name to {"columns", "mapping", "rows"}

    Raises:
        FileNotFoundError: If fixture file doesn't exist
    """
    if not fixture_path.exists():
        raise FileNotFoundError(f"Fixture file not found: {fixture_path}")

    with open(fixture_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    return data.get("sources", {})


def create_people_table(
    connection: Connection,
    name: str,
    columns: List[str],
    rows: List[Dict[str, Optional[str]]],
) -> Table:
    """Create a table of text columns and insert ``rows`` into it."""
    table = Table(name, MetaData(), *[Column(column, String) for column in columns])
    table.create(connection)
    if rows:
        connection.execute(table.insert(), [{c: row.get(c) for c in columns} for row in rows])
    return table
