"""Data models for the normalization layer."""

from dataclasses import dataclass

from personmatch.domain.fields import CanonicalField


@dataclass(frozen=True)
class NormalizationPolicyGap:
    """Values present in a source that normalization could not interpret.

    These values are matched as unknown (NULL). The gap is a data-quality
    signal for the caller, never an error.

    Attributes:
        source: Name of the record source
        field: Canonical field whose values were not recognised
        count: Number of non-null raw values that normalized to NULL
    """

    source: str
    field: CanonicalField
    count: int

    def describe(self) -> str:
        return f"{self.source}.{self.field.value}: {self.count} value(s) normalized to unknown"
