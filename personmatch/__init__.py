"""Query-pushdown record linkage for person records.

Typical use:

    >>> from personmatch import match, open_engine, MemoryDestination
    >>> handle = match(patients, patient_mapping, registry, registry_mapping)
    >>> with open_engine("sqlite:///people.db") as engine:
    ...     result = handle.materialize(engine, MemoryDestination())
"""

__version__ = "0.1.0"

from personmatch.backend import (
    BackingEngineError,
    CsvDestination,
    MemoryDestination,
    TableDestination,
    open_engine,
)
from personmatch.config import ConfigurationError, MatchConfig, load_config, setup_logging
from personmatch.domain import NO_MATCH, CanonicalField, FieldMapping, OutputType, RecordSource
from personmatch.matching import (
    ComposedMatch,
    MatchComposer,
    MaterializedMatch,
    match,
    materialize,
    score_pair,
)
from personmatch.normalization import FieldNormalizer, NormalizationPolicyGap, audit_normalization

__all__ = [
    "__version__",
    "match",
    "materialize",
    "MatchComposer",
    "ComposedMatch",
    "MaterializedMatch",
    "score_pair",
    "RecordSource",
    "FieldMapping",
    "CanonicalField",
    "OutputType",
    "NO_MATCH",
    "MatchConfig",
    "load_config",
    "setup_logging",
    "FieldNormalizer",
    "audit_normalization",
    "NormalizationPolicyGap",
    "open_engine",
    "TableDestination",
    "MemoryDestination",
    "CsvDestination",
    "ConfigurationError",
    "BackingEngineError",
]
