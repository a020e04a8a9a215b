"""Non-fatal configuration checks."""

import warnings
from typing import Any, Dict, List

# Fields with few distinct values; blocking on one of these alone yields huge candidate sets
LOW_CARDINALITY_FIELDS = {"dob", "forename"}


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """Inspect a raw configuration dict for settings that are valid but risky.

    Args:
        config_dict: Raw configuration dictionary (before validation)

    Returns:
        List of warning messages
    """
    messages = []
    match = config_dict.get("match") or {}
    if not isinstance(match, dict):
        return messages

    comparators = match.get("comparators") or {}
    if isinstance(comparators, dict):
        for field, comparator in comparators.items():
            if not isinstance(comparator, dict):
                continue
            kind = comparator.get("kind")
            threshold = comparator.get("threshold")
            if kind == "levenshtein" and isinstance(threshold, (int, float)) and threshold > 3:
                messages.append(
                    f"Levenshtein threshold {threshold} for {field} will accept very different names"
                )
            if kind == "jaro_winkler" and isinstance(threshold, (int, float)) and threshold < 0.8:
                messages.append(
                    f"Jaro-Winkler threshold {threshold} for {field} will accept very different names"
                )

    blocking_rules = match.get("blocking_rules") or []
    if isinstance(blocking_rules, list):
        for idx, rule in enumerate(blocking_rules):
            fields = rule.get("fields") if isinstance(rule, dict) else None
            if isinstance(fields, list) and len(fields) == 1 and fields[0] in LOW_CARDINALITY_FIELDS:
                messages.append(
                    f"Blocking rule {idx} uses only '{fields[0]}', which may produce "
                    "very large candidate sets"
                )

    return messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit each message as a UserWarning."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
