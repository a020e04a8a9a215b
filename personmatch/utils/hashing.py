"""Deterministic fingerprints for composed match plans.

A fingerprint identifies a plan by what it computes: the SQL of its record
sources plus the match configuration and output options. Two calls with
identical inputs produce the same fingerprint, which is used as
``match_id`` in log context.
"""

import hashlib
import json
from typing import Any, Mapping


def hash_string(value: str) -> str:
    """SHA256 hex digest of a UTF-8 string."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def compute_plan_fingerprint(sql_text: str, settings: Mapping[str, Any], length: int = 16) -> str:
    """Fingerprint a plan from its SQL text and the settings that shaped it.

    Args:
        sql_text: SQL of the plan inputs, rendered without a target dialect
        settings: JSON-serializable description of config and output options
        length: Number of hex characters to keep

    Returns:
        Lowercase hex string of ``length`` characters
    """
    canonical_settings = json.dumps(settings, sort_keys=True, default=str, separators=(",", ":"))
    return hash_string(f"{sql_text}\n{canonical_settings}")[:length]
