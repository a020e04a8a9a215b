"""Normalization of person fields as SQL expressions.

This module provides:
- normalize_name / normalize_postcode / normalize_dob: expression builders
- FieldNormalizer: applies them to a RecordSource without executing anything
- audit_normalization: counts values that normalized to unknown
- NormalizationPolicyGap: one such data-quality finding
"""

from .expressions import (
    normalize_dob,
    normalize_expression,
    normalize_name,
    normalize_postcode,
    translate_chars,
)
from .models import NormalizationPolicyGap
from .service import FieldNormalizer, audit_normalization

__all__ = [
    "FieldNormalizer",
    "NormalizationPolicyGap",
    "audit_normalization",
    "normalize_dob",
    "normalize_expression",
    "normalize_name",
    "normalize_postcode",
    "translate_chars",
]
