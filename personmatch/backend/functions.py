"""SQL functions for engines that lack them.

PostgreSQL (fuzzystrmatch) and DuckDB ship ``levenshtein``; DuckDB also ships
``jaro_winkler_similarity``. Both have ``translate``. SQLite has none of
them, so ``register_sql_functions`` installs Python versions under the same
names on each new DBAPI connection.
"""

import sqlite3
from functools import lru_cache
from typing import Dict, Optional

from rapidfuzz.distance import JaroWinkler, Levenshtein

LEVENSHTEIN = "levenshtein"
JARO_WINKLER_SIMILARITY = "jaro_winkler_similarity"
TRANSLATE = "translate"


def levenshtein(left: Optional[str], right: Optional[str]) -> Optional[int]:
    """Edit distance, or None if either side is None."""
    if left is None or right is None:
        return None
    return Levenshtein.distance(str(left), str(right))


def jaro_winkler_similarity(left: Optional[str], right: Optional[str]) -> Optional[float]:
    """Jaro-Winkler similarity in [0, 1], or None if either side is None."""
    if left is None or right is None:
        return None
    return JaroWinkler.similarity(str(left), str(right))


@lru_cache(maxsize=64)
def _translation_table(from_chars: str, to_chars: str) -> Dict[int, Optional[int]]:
    table: Dict[int, Optional[int]] = {}
    for idx, ch in enumerate(from_chars):
        # First occurrence wins, as in PostgreSQL
        if ord(ch) not in table:
            table[ord(ch)] = ord(to_chars[idx]) if idx < len(to_chars) else None
    return table


def translate(value: Optional[str], from_chars: str, to_chars: str) -> Optional[str]:
    """PostgreSQL-style ``translate``: map ``from_chars[i]`` to ``to_chars[i]``.

    Characters of ``from_chars`` with no counterpart in ``to_chars`` are
    deleted. Returns None if any argument is None.
    """
    if value is None or from_chars is None or to_chars is None:
        return None
    return str(value).translate(_translation_table(from_chars, to_chars))


def register_sql_functions(dbapi_connection) -> None:
    """Register the similarity and translate functions on a raw sqlite3 connection.

    Connections from other drivers are left untouched.
    """
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    dbapi_connection.create_function(LEVENSHTEIN, 2, levenshtein, deterministic=True)
    dbapi_connection.create_function(
        JARO_WINKLER_SIMILARITY, 2, jaro_winkler_similarity, deterministic=True
    )
    dbapi_connection.create_function(TRANSLATE, 3, translate, deterministic=True)
