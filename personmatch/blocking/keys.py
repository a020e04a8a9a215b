"""Blocking key expressions.

A blocking key is the concatenation of already-normalized fields, so
candidate generation is a plain equality join that the backing engine can
hash or index. NULL fields contribute an empty string: two records that are
both unknown on every field of a rule still land in the same block.
"""

from typing import List, Mapping, Sequence

from sqlalchemy import String, func, literal, type_coerce
from sqlalchemy.sql.expression import ColumnElement, Label

from personmatch.config.exceptions import ConfigurationError
from personmatch.config.models import BlockingRule
from personmatch.domain.fields import CanonicalField
from personmatch.domain.models import FieldMapping

KEY_SEPARATOR = "|"


def block_column_name(index: int) -> str:
    return f"block_{index}"


def blocking_key_expression(
    columns: Mapping[CanonicalField, ColumnElement], rule: BlockingRule
) -> ColumnElement:
    """Build the key for one rule from normalized field columns.

    Args:
        columns: Normalized column per canonical field
        rule: Blocking rule naming the fields, in order

    Raises:
        ConfigurationError: If a field of the rule has no column
    """
    parts = []
    for field in rule.fields:
        if field not in columns:
            raise ConfigurationError(
                f"Blocking rule '{rule.label}' uses field '{field.value}' which has no column"
            )
        parts.append(type_coerce(func.coalesce(columns[field], literal("", String)), String))

    key = parts[0]
    for part in parts[1:]:
        key = key + literal(KEY_SEPARATOR, String) + part
    return type_coerce(key, String)


def build_blocking_keys(
    columns: Mapping[CanonicalField, ColumnElement], rules: Sequence[BlockingRule]
) -> List[Label]:
    """Return one labelled key expression per rule: block_0, block_1, ..."""
    return [
        blocking_key_expression(columns, rule).label(block_column_name(idx))
        for idx, rule in enumerate(rules)
    ]


def check_blocking_rules(
    rules: Sequence[BlockingRule], mapping_a: FieldMapping, mapping_b: FieldMapping
) -> None:
    """Reject rules that reference a field unmapped on either side.

    Raises:
        ConfigurationError: Listing every offending rule and field
    """
    errors = []
    for rule in rules:
        for field in rule.fields:
            for side, mapping in (("A", mapping_a), ("B", mapping_b)):
                if not mapping.is_mapped(field):
                    errors.append(
                        f"Blocking rule '{rule.label}' uses '{field.value}', "
                        f"which source {side} does not map"
                    )
    if errors:
        raise ConfigurationError(
            "Malformed blocking rules",
            errors=errors,
            suggestions=[
                "Remove the rule or map the field on both sources",
                "Blocking rules can only use fields both sources provide",
            ],
        )
