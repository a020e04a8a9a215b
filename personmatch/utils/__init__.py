"""Utility functions for hashing and time handling."""

from .hashing import compute_plan_fingerprint, hash_string
from .timestamps import format_timestamp, utc_now

__all__ = [
    "compute_plan_fingerprint",
    "hash_string",
    "format_timestamp",
    "utc_now",
]
