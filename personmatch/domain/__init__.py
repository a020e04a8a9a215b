"""Domain types shared by every stage of the matching engine."""

from .fields import (
    COMPARABLE_FIELDS,
    NO_MATCH,
    AgreementLevel,
    CanonicalField,
    OutputType,
)
from .models import FieldMapping, RecordSource

__all__ = [
    "AgreementLevel",
    "CanonicalField",
    "COMPARABLE_FIELDS",
    "FieldMapping",
    "NO_MATCH",
    "OutputType",
    "RecordSource",
]
