"""Unit tests for comparator and decision logic.

The SQL expressions and the Python reference scorer must agree, and both
are pure functions of the pair.
"""

import pytest
from sqlalchemy import Integer, String, literal, select

from personmatch.config import ComparatorConfig, ComparatorKind, MatchConfig, TierRule
from personmatch.domain import NO_MATCH, AgreementLevel, CanonicalField
from personmatch.matching import (
    agreement_expression,
    compare_values,
    decide,
    decision_expression,
    score_pair,
)

LEVENSHTEIN_2 = ComparatorConfig(kind=ComparatorKind.LEVENSHTEIN, threshold=2)
JARO_WINKLER_90 = ComparatorConfig(kind=ComparatorKind.JARO_WINKLER, threshold=0.9)
EXACT = ComparatorConfig(kind=ComparatorKind.EXACT)

F, S, D, P = (
    CanonicalField.FORENAME,
    CanonicalField.SURNAME,
    CanonicalField.DOB,
    CanonicalField.POSTCODE,
)


def sql_level(engine, left, right, comparator, mapped=True):
    expression = agreement_expression(
        literal(left, String), literal(right, String), comparator, mapped=mapped
    )
    with engine.connect() as conn:
        return conn.execute(select(expression)).scalar()


def sql_decision(engine, levels, rules):
    columns = {field: literal(int(level), Integer) for field, level in levels.items()}
    with engine.connect() as conn:
        return conn.execute(select(decision_expression(columns, rules))).scalar()


def levels(f, s, d, p):
    return {F: AgreementLevel(f), S: AgreementLevel(s), D: AgreementLevel(d), P: AgreementLevel(p)}


COMPARISONS = [
    ("SMITH", "SMITH", LEVENSHTEIN_2, AgreementLevel.EXACT),
    ("MARY", "MARIE", LEVENSHTEIN_2, AgreementLevel.FUZZY),
    ("PETER", "PETE", LEVENSHTEIN_2, AgreementLevel.FUZZY),
    ("JON", "JOHN", LEVENSHTEIN_2, AgreementLevel.FUZZY),
    ("JOHN", "JANE", LEVENSHTEIN_2, AgreementLevel.DISAGREE),
    ("JOHN", "MARY", LEVENSHTEIN_2, AgreementLevel.DISAGREE),
    ("MARTHA", "MARHTA", JARO_WINKLER_90, AgreementLevel.FUZZY),
    ("SMITH", "JONES", JARO_WINKLER_90, AgreementLevel.DISAGREE),
    ("SW1A1AA", "SW1A1AB", EXACT, AgreementLevel.DISAGREE),
    ("1980-01-15", "1980-01-15", EXACT, AgreementLevel.EXACT),
    (None, "SMITH", LEVENSHTEIN_2, AgreementLevel.MISSING),
    ("SMITH", None, EXACT, AgreementLevel.MISSING),
    (None, None, JARO_WINKLER_90, AgreementLevel.MISSING),
]


class TestCompareValues:
    """Tests for per-field agreement levels."""

    @pytest.mark.parametrize("left,right,comparator,expected", COMPARISONS)
    def test_python_reference(self, left, right, comparator, expected):
        assert compare_values(left, right, comparator) == expected

    @pytest.mark.parametrize("left,right,comparator,expected", COMPARISONS)
    def test_sql_matches_python(self, engine, left, right, comparator, expected):
        assert sql_level(engine, left, right, comparator) == int(expected)

    def test_unmapped_field_disagrees(self, engine):
        assert sql_level(engine, "SMITH", "SMITH", EXACT, mapped=False) == 0

    def test_threshold_boundary(self):
        strict = ComparatorConfig(kind=ComparatorKind.LEVENSHTEIN, threshold=1)

        assert compare_values("MARY", "MARIE", strict) == AgreementLevel.DISAGREE
        assert compare_values("MARY", "MARI", strict) == AgreementLevel.FUZZY

    def test_pure(self, engine):
        """The same pair always yields the same level."""
        first = sql_level(engine, "PETER", "PETE", LEVENSHTEIN_2)
        second = sql_level(engine, "PETER", "PETE", LEVENSHTEIN_2)

        assert first == second == int(AgreementLevel.FUZZY)


DECISIONS = [
    (levels(2, 2, 2, 2), "MATCH"),
    (levels(1, 2, 2, 2), "MATCH_TIER_2"),
    (levels(2, 1, 2, 2), "MATCH_TIER_2"),
    (levels(1, 1, 2, 2), NO_MATCH),
    (levels(1, 2, 2, 0), "MATCH_TIER_3"),
    (levels(2, 2, 2, -1), "MATCH_TIER_3"),
    (levels(2, 2, 0, 2), NO_MATCH),
    (levels(2, 2, -1, 2), NO_MATCH),
    (levels(2, 0, 2, 0), NO_MATCH),
    (levels(-1, -1, -1, -1), NO_MATCH),
]


class TestDecision:
    """Tests for the ordered tier table."""

    @pytest.mark.parametrize("vector,expected", DECISIONS)
    def test_python_reference(self, vector, expected):
        assert decide(vector, MatchConfig().tier_rules) == expected

    @pytest.mark.parametrize("vector,expected", DECISIONS)
    def test_sql_matches_python(self, engine, vector, expected):
        assert sql_decision(engine, vector, MatchConfig().tier_rules) == expected

    def test_first_satisfied_rule_wins(self, engine):
        rules = [
            TierRule(name="LOOSE", min_agreeing=2),
            TierRule(name="STRICT", min_exact=4),
        ]
        vector = levels(2, 2, 2, 2)

        assert decide(vector, rules) == "LOOSE"
        assert sql_decision(engine, vector, rules) == "LOOSE"

    def test_required_field(self, engine):
        rules = [TierRule(name="SAME_DOB", required=[D])]

        assert decide(levels(0, 0, 1, 0), rules) == "SAME_DOB"
        assert sql_decision(engine, levels(0, 0, -1, 0), rules) == NO_MATCH


class TestScorePair:
    """Tests for the Python reference scorer on whole records."""

    def test_exact_pair(self):
        record = {"forename": "JOHN", "surname": "SMITH", "dob": "1980-01-15", "postcode": "SW1A1AA"}

        score = score_pair(record, dict(record))

        assert score.decision == "MATCH"
        assert score.is_match
        assert set(score.levels.values()) == {AgreementLevel.EXACT}

    def test_tier_two(self):
        a = {"forename": "MARY", "surname": "OBRIEN", "dob": "1975-06-30", "postcode": "M11AE"}
        b = {"forename": "MARIE", "surname": "OBRIEN", "dob": "1975-06-30", "postcode": "M11AE"}

        score = score_pair(a, b)

        assert score.levels[F] == AgreementLevel.FUZZY
        assert score.decision == "MATCH_TIER_2"

    def test_absent_key_is_unmapped(self):
        a = {"forename": "JOHN", "surname": "SMITH", "dob": "1980-01-15"}
        b = {"forename": "JOHN", "surname": "SMITH", "dob": "1980-01-15", "postcode": None}

        score = score_pair(a, b)

        assert score.levels[P] == AgreementLevel.DISAGREE
        assert score.decision == "MATCH_TIER_3"

    def test_custom_config(self):
        config = MatchConfig(tier_rules=[TierRule(name="SURNAME_ONLY", min_exact=1, required=[S])])
        a = {"forename": None, "surname": "SMITH", "dob": None, "postcode": None}

        assert score_pair(a, dict(a), config).decision == "SURNAME_ONLY"
        assert not score_pair(a, {**a, "surname": "JONES"}, config).is_match
