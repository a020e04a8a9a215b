"""Field normalization service.

Applies the SQL normalization expressions to a RecordSource by wrapping its
selectable in a projection. Nothing is executed here except in
``audit_normalization``, which counts values that normalized to unknown.
"""

import logging
from typing import Iterable, List, Optional, Union

from sqlalchemy import and_, case, func, literal, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from personmatch.backend.exceptions import BackingEngineError
from personmatch.domain.fields import COMPARABLE_FIELDS, CanonicalField
from personmatch.domain.models import RecordSource
from personmatch.logging import get_logger

from .expressions import normalize_expression
from .models import NormalizationPolicyGap

logger = get_logger(__name__, component="normalization")


class FieldNormalizer:
    """Replaces mapped columns of a RecordSource with their normalized form.

    The result is a new RecordSource over a subquery with the same column
    names and the same mapping, so it can be normalized again (a no-op) or
    passed straight to ``match``.
    """

    def __init__(self, logger_instance: Optional[logging.Logger] = None):
        self.logger = logger_instance or logger

    def normalize(self, source: RecordSource, field: CanonicalField) -> RecordSource:
        """Normalize a single canonical field. Unmapped fields leave the source unchanged."""
        return self.normalize_fields(source, [field])

    def normalize_all(self, source: RecordSource) -> RecordSource:
        """Normalize every mapped comparable field in one projection."""
        return self.normalize_fields(source, COMPARABLE_FIELDS)

    def normalize_fields(
        self, source: RecordSource, fields: Iterable[CanonicalField]
    ) -> RecordSource:
        targets = {}
        for field in fields:
            field = CanonicalField(field)
            if field == CanonicalField.ID:
                raise ValueError("The id field is never normalized")
            if source.is_mapped(field):
                targets[source.mapping.column_name(field)] = field

        if not targets:
            return source

        columns = [
            normalize_expression(targets[column.key], column).label(column.key)
            if column.key in targets
            else column
            for column in source.selectable.c
        ]
        normalized = source.with_selectable(select(*columns).subquery())

        self.logger.debug(
            f"Normalization applied to {source.name}",
            extra={
                "event": "normalization.fields.applied",
                "source": source.name,
                "fields": sorted(f.value for f in targets.values()),
            },
        )
        return normalized


def audit_normalization(
    bind: Union[Engine, Connection],
    source: RecordSource,
    logger_instance: Optional[logging.Logger] = None,
) -> List[NormalizationPolicyGap]:
    """Count, per mapped field, raw values that normalized to unknown.

    Runs one aggregate query against the backing engine. Each field with a
    non-zero count is logged as a warning and returned.

    Raises:
        BackingEngineError: If the backing engine fails
    """
    log = logger_instance or logger
    fields = source.mapping.mapped_fields()
    if not fields:
        return []

    counters = []
    for field in fields:
        raw = source.column(field)
        normalized = normalize_expression(field, raw)
        unknown = and_(raw.isnot(None), normalized.is_(None))
        counters.append(func.coalesce(func.sum(case((unknown, 1), else_=0)), literal(0)).label(field.value))

    statement = select(*counters).select_from(source.selectable)
    try:
        if isinstance(bind, Engine):
            with bind.connect() as connection:
                row = connection.execute(statement).one()
        else:
            row = bind.execute(statement).one()
    except SQLAlchemyError as e:
        log.error(
            f"Normalization audit failed for {source.name}: {e}",
            extra={"event": "normalization.audit.failed", "source": source.name},
        )
        raise BackingEngineError(f"Normalization audit failed: {e}", original=e) from e

    gaps = []
    for field in fields:
        count = int(row._mapping[field.value])
        if count:
            gap = NormalizationPolicyGap(source=source.name, field=field, count=count)
            gaps.append(gap)
            log.warning(
                gap.describe(),
                extra={
                    "event": "normalization.policy_gap",
                    "source": source.name,
                    "field": field.value,
                    "unknown_count": count,
                },
            )
    return gaps
