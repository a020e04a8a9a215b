"""Blocking keys that restrict candidate pairs to records sharing exact values."""

from .keys import (
    KEY_SEPARATOR,
    block_column_name,
    blocking_key_expression,
    build_blocking_keys,
    check_blocking_rules,
)

__all__ = [
    "KEY_SEPARATOR",
    "block_column_name",
    "blocking_key_expression",
    "build_blocking_keys",
    "check_blocking_rules",
]
