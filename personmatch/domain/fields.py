"""Canonical field names and the enumerations used in match output."""

from enum import Enum, IntEnum
from typing import Tuple


class CanonicalField(str, Enum):
    """Fields every record source is mapped onto."""

    ID = "id"
    FORENAME = "forename"
    SURNAME = "surname"
    DOB = "dob"
    POSTCODE = "postcode"


# Order here fixes the column order of full output and agreement vectors
COMPARABLE_FIELDS: Tuple[CanonicalField, ...] = (
    CanonicalField.FORENAME,
    CanonicalField.SURNAME,
    CanonicalField.DOB,
    CanonicalField.POSTCODE,
)


class OutputType(str, Enum):
    """Shape of the rows produced by a match."""

    KEY = "key"
    FULL = "full"


class AgreementLevel(IntEnum):
    """Per-field agreement between the two records of a candidate pair."""

    MISSING = -1
    DISAGREE = 0
    FUZZY = 1
    EXACT = 2


NO_MATCH = "NO_MATCH"
