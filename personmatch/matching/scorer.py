"""Comparator and decision expressions.

Each comparable field of a candidate pair gets an agreement level:
2 exact, 1 fuzzy, 0 disagree, -1 missing. The ordered tier table reduces the
four levels to a decision label. The same rules are available in Python
(``score_pair``) for values that have already been normalized.
"""

from typing import Dict, Mapping, Optional, Sequence, Tuple

from sqlalchemy import Integer, String, and_, case, func, literal, or_, type_coerce
from sqlalchemy.sql.expression import ColumnElement

from personmatch.backend.functions import (
    JARO_WINKLER_SIMILARITY,
    LEVENSHTEIN,
    jaro_winkler_similarity,
    levenshtein,
)
from personmatch.config.models import ComparatorConfig, ComparatorKind, MatchConfig, TierRule
from personmatch.domain.fields import COMPARABLE_FIELDS, NO_MATCH, AgreementLevel, CanonicalField

from .models import PairScore


def agreement_expression(
    left: ColumnElement,
    right: ColumnElement,
    comparator: ComparatorConfig,
    mapped: bool = True,
) -> ColumnElement:
    """CASE expression yielding the agreement level of two normalized values.

    Args:
        left: Normalized value from source A
        right: Normalized value from source B
        comparator: How the field is compared
        mapped: False when either source has no column for the field; the
            level is then a constant DISAGREE
    """
    if not mapped:
        return literal(int(AgreementLevel.DISAGREE), Integer)

    whens = [
        (or_(left.is_(None), right.is_(None)), int(AgreementLevel.MISSING)),
        (left == right, int(AgreementLevel.EXACT)),
    ]
    if comparator.kind == ComparatorKind.LEVENSHTEIN:
        distance = type_coerce(getattr(func, LEVENSHTEIN)(left, right), Integer)
        whens.append((distance <= int(comparator.threshold), int(AgreementLevel.FUZZY)))
    elif comparator.kind == ComparatorKind.JARO_WINKLER:
        similarity = getattr(func, JARO_WINKLER_SIMILARITY)(left, right)
        whens.append((similarity >= comparator.threshold, int(AgreementLevel.FUZZY)))

    return type_coerce(case(*whens, else_=int(AgreementLevel.DISAGREE)), Integer)


def count_agreements(
    levels: Mapping[CanonicalField, ColumnElement]
) -> Tuple[ColumnElement, ColumnElement]:
    """Return (exact count, fuzzy count) expressions over the agreement levels."""
    exact = [_indicator(lvl == int(AgreementLevel.EXACT)) for lvl in levels.values()]
    fuzzy = [_indicator(lvl == int(AgreementLevel.FUZZY)) for lvl in levels.values()]
    return _sum(exact), _sum(fuzzy)


def _indicator(condition) -> ColumnElement:
    return type_coerce(case((condition, 1), else_=0), Integer)


def _sum(terms) -> ColumnElement:
    total = terms[0]
    for term in terms[1:]:
        total = total + term
    return total


def decision_expression(
    levels: Mapping[CanonicalField, ColumnElement],
    rules: Sequence[TierRule],
) -> ColumnElement:
    """CASE over the ordered tier rules; the first satisfied rule names the decision.

    ``levels`` normally holds the agreement columns of a scored CTE.
    """
    exact_count, fuzzy_count = count_agreements(levels)

    whens = []
    for rule in rules:
        conditions = []
        if rule.min_exact:
            conditions.append(exact_count >= rule.min_exact)
        if rule.min_agreeing:
            conditions.append(exact_count + fuzzy_count >= rule.min_agreeing)
        if rule.max_fuzzy is not None:
            conditions.append(fuzzy_count <= rule.max_fuzzy)
        for field in rule.required:
            conditions.append(levels[field] >= int(AgreementLevel.FUZZY))
        whens.append((and_(*conditions), literal(rule.name, String)))

    return type_coerce(case(*whens, else_=literal(NO_MATCH, String)), String)


# Python reference


def compare_values(
    left: Optional[str], right: Optional[str], comparator: ComparatorConfig
) -> AgreementLevel:
    """Agreement level of two normalized values, mirroring ``agreement_expression``."""
    if left is None or right is None:
        return AgreementLevel.MISSING
    if left == right:
        return AgreementLevel.EXACT
    if comparator.kind == ComparatorKind.LEVENSHTEIN:
        if levenshtein(left, right) <= comparator.threshold:
            return AgreementLevel.FUZZY
    elif comparator.kind == ComparatorKind.JARO_WINKLER:
        if jaro_winkler_similarity(left, right) >= comparator.threshold:
            return AgreementLevel.FUZZY
    return AgreementLevel.DISAGREE


def rule_satisfied(rule: TierRule, levels: Mapping[CanonicalField, AgreementLevel]) -> bool:
    exact = sum(1 for lvl in levels.values() if lvl == AgreementLevel.EXACT)
    fuzzy = sum(1 for lvl in levels.values() if lvl == AgreementLevel.FUZZY)
    if exact < rule.min_exact:
        return False
    if exact + fuzzy < rule.min_agreeing:
        return False
    if rule.max_fuzzy is not None and fuzzy > rule.max_fuzzy:
        return False
    return all(levels[field] >= AgreementLevel.FUZZY for field in rule.required)


def decide(levels: Mapping[CanonicalField, AgreementLevel], rules: Sequence[TierRule]) -> str:
    """Name of the first satisfied rule, or NO_MATCH."""
    for rule in rules:
        if rule_satisfied(rule, levels):
            return rule.name
    return NO_MATCH


def score_pair(
    record_a: Mapping[str, Optional[str]],
    record_b: Mapping[str, Optional[str]],
    config: Optional[MatchConfig] = None,
) -> PairScore:
    """Score two records whose values are already normalized.

    Records are keyed by canonical field name. A key absent from either
    record means the field is unmapped on that side and scores DISAGREE; a
    key present with None is unknown and scores MISSING.
    """
    config = config or MatchConfig()
    levels: Dict[CanonicalField, AgreementLevel] = {}
    for field in COMPARABLE_FIELDS:
        if field.value not in record_a or field.value not in record_b:
            levels[field] = AgreementLevel.DISAGREE
            continue
        levels[field] = compare_values(
            record_a[field.value], record_b[field.value], config.comparator_for(field)
        )
    return PairScore(levels=levels, decision=decide(levels, config.tier_rules))
