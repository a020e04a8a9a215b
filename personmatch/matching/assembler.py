"""Output shaping for composed matches.

The decided CTE carries every output column. The assembler keeps the pairs
that satisfied a tier rule, projects the requested shape and, when asked,
appends one NO_MATCH row for every source-A record with no matched pair.
"""

from typing import List, Tuple

from sqlalchemy import String, cast, literal, null, select, union_all
from sqlalchemy.sql.expression import ColumnElement, FromClause, Select
from sqlalchemy.types import NullType, TypeEngine

from personmatch.domain.fields import COMPARABLE_FIELDS, NO_MATCH, OutputType

ID_COLUMN = "record_id"
DECISION_COLUMN = "decision"


def raw_column_name(field) -> str:
    return f"raw_{field.value}"


def side_column_name(field, side: str) -> str:
    return f"{field.value}_{side}"


def agreement_column_name(field) -> str:
    return f"{field.value}_agreement"


def output_columns(output_type: OutputType) -> Tuple[str, ...]:
    """Column names of the output rows, in order."""
    if OutputType(output_type) == OutputType.KEY:
        return ("id_a", "id_b", DECISION_COLUMN)

    columns: List[str] = ["id_a"]
    columns.extend(side_column_name(f, "a") for f in COMPARABLE_FIELDS)
    columns.append("id_b")
    columns.extend(side_column_name(f, "b") for f in COMPARABLE_FIELDS)
    columns.extend(agreement_column_name(f) for f in COMPARABLE_FIELDS)
    columns.append(DECISION_COLUMN)
    return tuple(columns)


def typed_null(type_: TypeEngine) -> ColumnElement:
    """NULL carrying a column type, so UNION branches agree on types."""
    if isinstance(type_, NullType):
        return null()
    return cast(null(), type_)


def assemble(
    decided: FromClause,
    prepared_a: FromClause,
    output_type: OutputType,
    include_no_match: bool = False,
) -> Select:
    """Project the output rows of a match.

    Args:
        decided: Pairs with every output column plus ``decision``
        prepared_a: Prepared source A, keyed by ``record_id``
        output_type: key or full
        include_no_match: Append one NO_MATCH row per unmatched source-A id

    Returns:
        SELECT producing exactly ``output_columns(output_type)``
    """
    output_type = OutputType(output_type)
    names = output_columns(output_type)

    matched = select(*[decided.c[name] for name in names]).where(
        decided.c[DECISION_COLUMN] != NO_MATCH
    )
    if not include_no_match:
        return matched

    has_match = (
        select(decided.c.id_a)
        .where(decided.c.id_a == prepared_a.c[ID_COLUMN])
        .where(decided.c[DECISION_COLUMN] != NO_MATCH)
        .exists()
    )

    a_side = {"id_a": prepared_a.c[ID_COLUMN]}
    for field in COMPARABLE_FIELDS:
        a_side[side_column_name(field, "a")] = prepared_a.c[raw_column_name(field)]

    unmatched_columns = []
    for name in names:
        if name in a_side:
            unmatched_columns.append(a_side[name].label(name))
        elif name == DECISION_COLUMN:
            unmatched_columns.append(literal(NO_MATCH, String).label(name))
        else:
            unmatched_columns.append(typed_null(decided.c[name].type).label(name))

    unmatched = select(*unmatched_columns).where(~has_match)

    combined = union_all(matched, unmatched).subquery("assembled")
    return select(*combined.c)
