"""Configuration schema models using Pydantic.

Comparator thresholds, blocking rules and the decision tier table are all
configuration, so a match is reproducible from its MatchConfig alone.
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from personmatch.domain.fields import COMPARABLE_FIELDS, NO_MATCH, CanonicalField


class ComparatorKind(str, Enum):
    """How two normalized values of one field are compared."""

    EXACT = "exact"
    LEVENSHTEIN = "levenshtein"
    JARO_WINKLER = "jaro_winkler"


DEFAULT_THRESHOLDS = {
    ComparatorKind.LEVENSHTEIN: 2,
    ComparatorKind.JARO_WINKLER: 0.9,
}


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class ComparatorConfig(BaseModel):
    """Comparator for one field.

    ``threshold`` is a maximum edit distance for levenshtein and a minimum
    similarity in [0, 1] for jaro_winkler. It is ignored for exact.
    """

    kind: ComparatorKind = Field(ComparatorKind.EXACT, description="Comparator kind")
    threshold: Optional[float] = Field(None, ge=0, description="Fuzzy agreement threshold")

    @model_validator(mode="after")
    def apply_default_threshold(self):
        if self.kind == ComparatorKind.EXACT:
            self.threshold = None
            return self

        if self.threshold is None:
            self.threshold = DEFAULT_THRESHOLDS[self.kind]

        if self.kind == ComparatorKind.LEVENSHTEIN:
            if self.threshold != int(self.threshold):
                raise ValueError("levenshtein threshold must be a whole number of edits")
            self.threshold = int(self.threshold)
        elif self.threshold > 1:
            raise ValueError("jaro_winkler threshold must be a similarity between 0 and 1")
        return self

    @property
    def is_fuzzy(self) -> bool:
        return self.kind != ComparatorKind.EXACT


def default_comparators() -> Dict[CanonicalField, ComparatorConfig]:
    return {
        CanonicalField.FORENAME: ComparatorConfig(kind=ComparatorKind.LEVENSHTEIN, threshold=2),
        CanonicalField.SURNAME: ComparatorConfig(kind=ComparatorKind.LEVENSHTEIN, threshold=2),
        CanonicalField.DOB: ComparatorConfig(kind=ComparatorKind.EXACT),
        CanonicalField.POSTCODE: ComparatorConfig(kind=ComparatorKind.EXACT),
    }


class BlockingRule(BaseModel):
    """An ordered set of normalized fields that candidate pairs must share exactly."""

    fields: List[CanonicalField] = Field(..., min_length=1)
    name: Optional[str] = Field(None, description="Label used in logs")

    @field_validator("fields")
    @classmethod
    def validate_fields(cls, v: List[CanonicalField]) -> List[CanonicalField]:
        if CanonicalField.ID in v:
            raise ValueError("Blocking rules cannot use the id field")
        if len(set(v)) != len(v):
            raise ValueError("Blocking rule lists the same field more than once")
        return v

    @property
    def label(self) -> str:
        return self.name or "+".join(f.value for f in self.fields)


def default_blocking_rules() -> List[BlockingRule]:
    return [
        BlockingRule(fields=[CanonicalField.SURNAME, CanonicalField.DOB]),
        BlockingRule(fields=[CanonicalField.FORENAME, CanonicalField.DOB]),
        BlockingRule(fields=[CanonicalField.POSTCODE, CanonicalField.DOB]),
    ]


class TierRule(BaseModel):
    """One row of the decision table.

    A pair satisfies the rule when it has at least ``min_exact`` exact
    agreements, at least ``min_agreeing`` exact-or-fuzzy agreements, no more
    than ``max_fuzzy`` fuzzy agreements, and agreement on every ``required``
    field.
    """

    name: str = Field(..., min_length=1, description="Decision label emitted for the pair")
    min_exact: int = Field(0, ge=0, le=len(COMPARABLE_FIELDS))
    min_agreeing: int = Field(0, ge=0, le=len(COMPARABLE_FIELDS))
    max_fuzzy: Optional[int] = Field(None, ge=0, le=len(COMPARABLE_FIELDS))
    required: List[CanonicalField] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Tier rule name cannot be empty")
        if stripped == NO_MATCH:
            raise ValueError(f"{NO_MATCH} is reserved for pairs that satisfy no rule")
        return stripped

    @field_validator("required")
    @classmethod
    def validate_required(cls, v: List[CanonicalField]) -> List[CanonicalField]:
        if CanonicalField.ID in v:
            raise ValueError("Tier rules cannot require the id field")
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def validate_constrains_something(self):
        if not (self.min_exact or self.min_agreeing or self.required):
            raise ValueError(
                f"Tier rule '{self.name}' would accept every pair; "
                "set min_exact, min_agreeing or required"
            )
        return self


def default_tier_rules() -> List[TierRule]:
    return [
        TierRule(name="MATCH", min_exact=4),
        TierRule(name="MATCH_TIER_2", min_agreeing=4, max_fuzzy=1),
        TierRule(name="MATCH_TIER_3", min_agreeing=3, max_fuzzy=1, required=[CanonicalField.DOB]),
    ]


class MatchConfig(BaseModel):
    """Comparators, blocking rules and decision tiers for a match."""

    comparators: Dict[CanonicalField, ComparatorConfig] = Field(default_factory=default_comparators)
    blocking_rules: List[BlockingRule] = Field(default_factory=default_blocking_rules, min_length=1)
    tier_rules: List[TierRule] = Field(default_factory=default_tier_rules, min_length=1)

    @field_validator("comparators")
    @classmethod
    def fill_comparators(
        cls, v: Dict[CanonicalField, ComparatorConfig]
    ) -> Dict[CanonicalField, ComparatorConfig]:
        if CanonicalField.ID in v:
            raise ValueError("The id field is never compared")
        merged = default_comparators()
        merged.update(v)
        return {field: merged[field] for field in COMPARABLE_FIELDS}

    @model_validator(mode="after")
    def validate_unique_names(self):
        names = [rule.name for rule in self.tier_rules]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate tier rule names: {', '.join(duplicates)}")

        keys = [tuple(rule.fields) for rule in self.blocking_rules]
        if len(set(keys)) != len(keys):
            raise ValueError("Duplicate blocking rules")
        return self

    def comparator_for(self, field: CanonicalField) -> ComparatorConfig:
        return self.comparators[CanonicalField(field)]

    def decision_labels(self) -> List[str]:
        return [rule.name for rule in self.tier_rules] + [NO_MATCH]


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root of the YAML configuration file."""

    match: MatchConfig = Field(default_factory=MatchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
