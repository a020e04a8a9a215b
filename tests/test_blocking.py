"""Unit tests for blocking keys and candidate generation."""

import pytest
from sqlalchemy import Column, MetaData, String, Table, literal, select

from personmatch.blocking import (
    KEY_SEPARATOR,
    blocking_key_expression,
    build_blocking_keys,
    check_blocking_rules,
)
from personmatch.config import BlockingRule, ConfigurationError
from personmatch.domain import CanonicalField, FieldMapping, RecordSource
from personmatch.matching import candidate_pairs, prepare_source

FULL_MAPPING = {"id": "id", "forename": "fn", "surname": "sn", "dob": "dob", "postcode": "pc"}


def make_table(engine, name, rows):
    table = Table(
        name,
        MetaData(),
        Column("id", String),
        Column("fn", String),
        Column("sn", String),
        Column("dob", String),
        Column("pc", String),
    )
    with engine.begin() as conn:
        table.create(conn)
        if rows:
            conn.execute(table.insert(), rows)
    return RecordSource.of(table, FULL_MAPPING)


def row(id, fn=None, sn=None, dob=None, pc=None):
    return {"id": id, "fn": fn, "sn": sn, "dob": dob, "pc": pc}


def candidates(engine, source_a, source_b, rules):
    prepared_a = prepare_source(source_a, rules, "prepared_a")
    prepared_b = prepare_source(source_b, rules, "prepared_b")
    pairs = candidate_pairs(prepared_a, prepared_b, len(rules))
    with engine.connect() as conn:
        return {(r.id_a, r.id_b) for r in conn.execute(select(pairs))}


class TestBlockingKeyExpression:
    """Tests for the key expression of a single rule."""

    def test_concatenates_in_rule_order(self, engine):
        rule = BlockingRule(fields=[CanonicalField.SURNAME, CanonicalField.DOB])
        columns = {
            CanonicalField.SURNAME: literal("SMITH", String),
            CanonicalField.DOB: literal("1980-01-15", String),
        }

        with engine.connect() as conn:
            key = conn.execute(select(blocking_key_expression(columns, rule))).scalar()

        assert key == f"SMITH{KEY_SEPARATOR}1980-01-15"

    def test_null_becomes_empty(self, engine):
        rule = BlockingRule(fields=[CanonicalField.SURNAME, CanonicalField.DOB])
        columns = {
            CanonicalField.SURNAME: literal(None, String),
            CanonicalField.DOB: literal("1980-01-15", String),
        }

        with engine.connect() as conn:
            key = conn.execute(select(blocking_key_expression(columns, rule))).scalar()

        assert key == "|1980-01-15"

    def test_missing_column_raises(self):
        rule = BlockingRule(fields=[CanonicalField.POSTCODE])

        with pytest.raises(ConfigurationError):
            blocking_key_expression({CanonicalField.SURNAME: literal("X", String)}, rule)

    def test_build_labels_in_order(self):
        rules = [
            BlockingRule(fields=[CanonicalField.SURNAME]),
            BlockingRule(fields=[CanonicalField.DOB]),
        ]
        columns = {
            CanonicalField.SURNAME: literal("A", String),
            CanonicalField.DOB: literal("B", String),
        }

        keys = build_blocking_keys(columns, rules)

        assert [k.name for k in keys] == ["block_0", "block_1"]


class TestCheckBlockingRules:
    """Tests for rule validation against the two mappings."""

    def test_rule_on_unmapped_field_raises(self):
        mapping_a = FieldMapping.from_dict(FULL_MAPPING)
        mapping_b = FieldMapping.from_dict({**FULL_MAPPING, "postcode": None})
        rules = [BlockingRule(fields=[CanonicalField.POSTCODE, CanonicalField.DOB])]

        with pytest.raises(ConfigurationError) as exc_info:
            check_blocking_rules(rules, mapping_a, mapping_b)

        assert "source B does not map" in str(exc_info.value)

    def test_rules_on_mapped_fields_pass(self):
        mapping = FieldMapping.from_dict(FULL_MAPPING)
        rules = [BlockingRule(fields=[CanonicalField.SURNAME, CanonicalField.DOB])]

        check_blocking_rules(rules, mapping, mapping)


class TestCandidatePairs:
    """Blocking soundness: every pair sharing a key is a candidate."""

    def test_pairs_sharing_any_rule_key(self, engine):
        source_a = make_table(
            engine,
            "a",
            [
                row("a1", "John", "Smith", "1980-01-15", "SW1A 1AA"),
                row("a2", "Mary", "Jones", "1975-06-30", "M1 1AE"),
                row("a3", "Ann", "Lee", "1960-01-01", "B1 1AA"),
            ],
        )
        source_b = make_table(
            engine,
            "b",
            [
                # Same surname and dob after normalization
                row("b1", "Jon", "SMITH", "15/01/1980", None),
                # Same forename and dob only
                row("b2", "mary", "Smith", "30.06.1975", None),
                # Same postcode and dob only
                row("b3", "X", "Y", "1960-01-01", "b11aa"),
                # Shares nothing
                row("b4", "John", "Smith", "1999-09-09", "SW1A 1AA"),
            ],
        )
        rules = [
            BlockingRule(fields=[CanonicalField.SURNAME, CanonicalField.DOB]),
            BlockingRule(fields=[CanonicalField.FORENAME, CanonicalField.DOB]),
            BlockingRule(fields=[CanonicalField.POSTCODE, CanonicalField.DOB]),
        ]

        assert candidates(engine, source_a, source_b, rules) == {
            ("a1", "b1"),
            ("a2", "b2"),
            ("a3", "b3"),
        }

    def test_pair_matching_several_rules_appears_once(self, engine):
        source_a = make_table(engine, "a", [row("a1", "John", "Smith", "1980-01-15", "E1 6AN")])
        source_b = make_table(engine, "b", [row("b1", "John", "Smith", "1980-01-15", "E1 6AN")])
        rules = [
            BlockingRule(fields=[CanonicalField.SURNAME, CanonicalField.DOB]),
            BlockingRule(fields=[CanonicalField.FORENAME, CanonicalField.DOB]),
        ]

        prepared_a = prepare_source(source_a, rules, "prepared_a")
        prepared_b = prepare_source(source_b, rules, "prepared_b")
        pairs = candidate_pairs(prepared_a, prepared_b, len(rules))
        with engine.connect() as conn:
            rows = conn.execute(select(pairs)).all()

        assert len(rows) == 1

    def test_unknown_blocks_with_unknown(self, engine):
        source_a = make_table(engine, "a", [row("a1", "John", None, None)])
        source_b = make_table(engine, "b", [row("b1", "Jane", None, None)])
        rules = [BlockingRule(fields=[CanonicalField.SURNAME, CanonicalField.DOB])]

        assert candidates(engine, source_a, source_b, rules) == {("a1", "b1")}

    def test_single_rule(self, engine):
        source_a = make_table(engine, "a", [row("a1", sn="Smith"), row("a2", sn="Jones")])
        source_b = make_table(engine, "b", [row("b1", sn="smith"), row("b2", sn="Brown")])
        rules = [BlockingRule(fields=[CanonicalField.SURNAME])]

        assert candidates(engine, source_a, source_b, rules) == {("a1", "b1")}
