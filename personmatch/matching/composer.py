"""Pushdown query composer.

Builds the complete match plan as SQLAlchemy Core constructs:

    prepared_a / prepared_b   raw ids and values, normalized values, block keys
    candidates                distinct union of one equi-join per blocking rule
    scored                    raw values of both sides plus agreement levels
    decided                   scored pairs plus the tier decision
    output                    key or full projection, optionally with NO_MATCH rows

Composition only builds expressions. Nothing is sent to the database until
the returned ComposedMatch is materialized.
"""

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from sqlalchemy import String, select, union
from sqlalchemy.sql.expression import CTE, FromClause, TableClause

from personmatch.blocking import block_column_name, build_blocking_keys, check_blocking_rules
from personmatch.config.exceptions import ConfigurationError
from personmatch.config.models import BlockingRule, MatchConfig
from personmatch.domain.fields import COMPARABLE_FIELDS, CanonicalField, OutputType
from personmatch.domain.models import FieldMapping, RecordSource
from personmatch.logging import get_logger
from personmatch.normalization.expressions import normalize_expression
from personmatch.utils.hashing import compute_plan_fingerprint

from .assembler import (
    DECISION_COLUMN,
    ID_COLUMN,
    agreement_column_name,
    assemble,
    output_columns,
    raw_column_name,
    side_column_name,
    typed_null,
)
from .models import ComposedMatch
from .scorer import agreement_expression, decision_expression

logger = get_logger(__name__, component="composer")

SourceLike = Union[RecordSource, FromClause]
MappingLike = Union[FieldMapping, Mapping[str, Any], None]


def norm_column_name(field: CanonicalField) -> str:
    return f"norm_{field.value}"


def prepare_source(source: RecordSource, rules: Sequence[BlockingRule], name: str) -> CTE:
    """Project a source into ids, raw values, normalized values and block keys.

    Unmapped fields become typed NULL columns so both prepared CTEs share the
    same shape.
    """
    columns = [source.column(CanonicalField.ID).label(ID_COLUMN)]
    for field in COMPARABLE_FIELDS:
        if source.is_mapped(field):
            raw = source.column(field)
            columns.append(raw.label(raw_column_name(field)))
            columns.append(normalize_expression(field, raw).label(norm_column_name(field)))
        else:
            columns.append(typed_null(String()).label(raw_column_name(field)))
            columns.append(typed_null(String()).label(norm_column_name(field)))

    normalized = select(*columns).subquery(f"{name}_normalized")
    keys = build_blocking_keys(
        {field: normalized.c[norm_column_name(field)] for field in source.mapping.mapped_fields()},
        rules,
    )
    return select(normalized, *keys).cte(name)


def candidate_pairs(prepared_a: CTE, prepared_b: CTE, rule_count: int) -> CTE:
    """Distinct (id_a, id_b) pairs sharing the key of at least one blocking rule."""
    joins = []
    for idx in range(rule_count):
        key = block_column_name(idx)
        joins.append(
            select(
                prepared_a.c[ID_COLUMN].label("id_a"),
                prepared_b.c[ID_COLUMN].label("id_b"),
            ).select_from(prepared_a.join(prepared_b, prepared_a.c[key] == prepared_b.c[key]))
        )
    if len(joins) == 1:
        return joins[0].distinct().cte("candidates")
    return union(*joins).cte("candidates")


def _coerce_output_type(output_type: Union[OutputType, str]) -> OutputType:
    try:
        return OutputType(output_type)
    except ValueError:
        raise ConfigurationError(
            f"Unsupported output_type '{output_type}'",
            suggestions=["Use 'key' or 'full'"],
        ) from None


def _coerce_source(source: SourceLike, mapping: MappingLike, default_name: str) -> RecordSource:
    if isinstance(source, RecordSource):
        return RecordSource.of(source, mapping)
    if not isinstance(source, FromClause):
        raise ConfigurationError(
            f"Record source must be a table or subquery, got {type(source).__name__}",
            suggestions=["Pass a sqlalchemy Table, table() construct, subquery or RecordSource"],
        )
    name = source.name if isinstance(source, TableClause) else default_name
    return RecordSource.of(source, mapping, name=name)


class MatchComposer:
    """Builds ComposedMatch plans from two record sources.

    Responsibilities:
    - Validate mappings, blocking rules and output options up front
    - Assemble the normalization, blocking, scoring and decision stages
    - Fingerprint the plan for log correlation
    """

    def __init__(
        self,
        config: Optional[MatchConfig] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        self.config = config or MatchConfig()
        self.logger = logger_instance or logger

    def compose(
        self,
        source_a: SourceLike,
        mapping_a: MappingLike,
        source_b: SourceLike,
        mapping_b: MappingLike,
        output_type: Union[OutputType, str] = OutputType.KEY,
        include_no_match: bool = False,
    ) -> ComposedMatch:
        """Compose the match plan without executing it.

        Raises:
            ConfigurationError: If a mapping does not fit its source, a
                blocking rule uses a field either source lacks, or the
                output type is unsupported
        """
        output_type = _coerce_output_type(output_type)
        a = _coerce_source(source_a, mapping_a, "source_a")
        b = _coerce_source(source_b, mapping_b, "source_b")

        rules = self.config.blocking_rules
        check_blocking_rules(rules, a.mapping, b.mapping)

        prepared_a = prepare_source(a, rules, "prepared_a")
        prepared_b = prepare_source(b, rules, "prepared_b")

        candidates = candidate_pairs(prepared_a, prepared_b, len(rules))
        scored = self._scored(candidates, prepared_a, prepared_b, a, b)
        decided = self._decided(scored)
        statement = assemble(decided, prepared_a, output_type, include_no_match)

        fingerprint = self._fingerprint(a, b, output_type, include_no_match)
        handle = ComposedMatch(
            statement=statement,
            output_type=output_type,
            include_no_match=include_no_match,
            config=self.config,
            columns=output_columns(output_type),
            fingerprint=fingerprint,
            source_a=a.name,
            source_b=b.name,
        )

        self.logger.info(
            f"Match composed: {a.name} x {b.name}",
            extra={
                "event": "match.composed",
                "match_id": fingerprint,
                "source_a": a.name,
                "source_b": b.name,
                "output_type": output_type.value,
                "include_no_match": include_no_match,
                "blocking_rules": [rule.label for rule in rules],
                "tier_rules": [rule.name for rule in self.config.tier_rules],
            },
        )
        return handle

    def _scored(
        self,
        candidates: CTE,
        prepared_a: CTE,
        prepared_b: CTE,
        a: RecordSource,
        b: RecordSource,
    ) -> CTE:
        columns = [candidates.c.id_a]
        columns.extend(
            prepared_a.c[raw_column_name(f)].label(side_column_name(f, "a")) for f in COMPARABLE_FIELDS
        )
        columns.append(candidates.c.id_b)
        columns.extend(
            prepared_b.c[raw_column_name(f)].label(side_column_name(f, "b")) for f in COMPARABLE_FIELDS
        )
        for field in COMPARABLE_FIELDS:
            level = agreement_expression(
                prepared_a.c[norm_column_name(field)],
                prepared_b.c[norm_column_name(field)],
                self.config.comparator_for(field),
                mapped=a.is_mapped(field) and b.is_mapped(field),
            )
            columns.append(level.label(agreement_column_name(field)))

        joined = candidates.join(
            prepared_a, candidates.c.id_a == prepared_a.c[ID_COLUMN]
        ).join(prepared_b, candidates.c.id_b == prepared_b.c[ID_COLUMN])
        return select(*columns).select_from(joined).cte("scored")

    def _decided(self, scored: CTE) -> CTE:
        levels = {field: scored.c[agreement_column_name(field)] for field in COMPARABLE_FIELDS}
        decision = decision_expression(levels, self.config.tier_rules)
        return select(scored, decision.label(DECISION_COLUMN)).cte("decided")

    def _fingerprint(
        self,
        a: RecordSource,
        b: RecordSource,
        output_type: OutputType,
        include_no_match: bool,
    ) -> str:
        # The plan is determined by the sources, the config and the options
        source_sql = []
        settings = {
            "config": self.config.model_dump(mode="json"),
            "mapping_a": a.mapping.model_dump(),
            "mapping_b": b.mapping.model_dump(),
            "output_type": output_type.value,
            "include_no_match": include_no_match,
        }
        for key, source in (("source_a", a), ("source_b", b)):
            compiled = select(*source.selectable.c).compile()
            source_sql.append(str(compiled))
            settings[f"{key}_params"] = compiled.params
        return compute_plan_fingerprint("\n".join(source_sql), settings)


def match(
    source_a: SourceLike,
    mapping_a: MappingLike,
    source_b: SourceLike,
    mapping_b: MappingLike,
    output_type: Union[OutputType, str] = "key",
    include_no_match: bool = False,
    config: Optional[MatchConfig] = None,
) -> ComposedMatch:
    """Compose a match between two record sources.

    Values that normalize to unknown (an unparseable date of birth, a name
    made only of punctuation) silently score as missing. Composing and
    materializing never report them. Run ``audit_normalization`` on each
    source to count them; it logs one ``normalization.policy_gap`` warning
    per affected field.

    Example:
        >>> handle = match(patients, PATIENT_MAPPING, registry, REGISTRY_MAPPING,
        ...                output_type="full", include_no_match=True)
        >>> print(handle.to_sql())
        >>> with engine.connect() as conn:
        ...     result = handle.materialize(conn, MemoryDestination())

    Raises:
        ConfigurationError: See ``MatchComposer.compose``
    """
    return MatchComposer(config).compose(
        source_a,
        mapping_a,
        source_b,
        mapping_b,
        output_type=output_type,
        include_no_match=include_no_match,
    )
