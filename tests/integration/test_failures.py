"""Failure handling at the materialize boundary."""

import logging

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from personmatch import BackingEngineError, CsvDestination, MemoryDestination, TableDestination, match
from personmatch.backend import DestinationError
from personmatch.logging.config import ContextualFilter


class TestBackingEngineErrors:
    """Engine failures surface as BackingEngineError and are not retried."""

    def test_missing_table_at_materialize(self, engine, patients, registry, caplog):
        """Test that a plan composed earlier fails only when it is executed."""
        handle = match(patients, None, registry, None)
        with engine.begin() as conn:
            conn.execute(text("DROP TABLE registry"))

        caplog.set_level(logging.ERROR)
        caplog.handler.addFilter(ContextualFilter())
        with pytest.raises(BackingEngineError) as exc_info:
            handle.materialize(engine, MemoryDestination())

        error = exc_info.value
        assert isinstance(error.original, OperationalError)
        assert error.__cause__ is error.original
        assert handle.fingerprint in str(error)

        failed = [r for r in caplog.records if getattr(r, "event", None) == "match.materialize.failed"]
        assert len(failed) == 1
        assert failed[0].match_id == handle.fingerprint
        assert failed[0].error_type == "OperationalError"

    def test_csv_write_failure_is_wrapped(self, engine, patients, registry, tmp_path):
        """Test that an OSError from the destination file becomes BackingEngineError."""
        target = tmp_path / "is_a_directory"
        target.mkdir()
        handle = match(patients, None, registry, None)

        with pytest.raises(BackingEngineError) as exc_info:
            handle.materialize(engine, CsvDestination(target))

        assert isinstance(exc_info.value.original, OSError)

    def test_scoring_failure_keeps_previous_csv(self, engine, patients, registry, tmp_path):
        """Test that a failure while scoring leaves an existing results file as it was."""
        path = tmp_path / "matches.csv"
        path.write_text("previous,good,results\n1,2,3\n", encoding="utf-8")
        handle = match(patients, None, registry, None)

        def broken_levenshtein(left, right):
            raise RuntimeError("similarity extension crashed")

        with engine.connect() as conn:
            conn.connection.driver_connection.create_function("levenshtein", 2, broken_levenshtein)
            with pytest.raises(BackingEngineError) as exc_info:
                handle.materialize(conn, CsvDestination(path))

        assert isinstance(exc_info.value.original, OperationalError)
        assert path.read_text(encoding="utf-8") == "previous,good,results\n1,2,3\n"
        assert [p.name for p in tmp_path.iterdir()] == ["matches.csv"]


class TestDestinationErrors:
    """Destination refusals propagate unchanged and leave no partial rows."""

    def test_existing_table_refused(self, engine, patients, registry):
        handle = match(patients, None, registry, None)
        handle.materialize(engine, TableDestination("linked"))

        with pytest.raises(DestinationError):
            handle.materialize(engine, TableDestination("linked"))

        with engine.connect() as conn:
            assert conn.execute(text("SELECT count(*) FROM linked")).scalar() == 3

    def test_failed_write_rolls_back_to_savepoint(self, engine, patients, registry):
        """Test that the caller's own transaction survives a failed materialize."""
        handle = match(patients, None, registry, None)

        with engine.connect() as conn:
            with conn.begin():
                conn.execute(text("CREATE TABLE audit_log (note VARCHAR)"))
                conn.execute(text("INSERT INTO audit_log VALUES ('before')"))
                conn.execute(text("CREATE TABLE linked (id_a VARCHAR)"))
                with pytest.raises(DestinationError):
                    handle.materialize(conn, TableDestination("linked"))
                conn.execute(text("INSERT INTO audit_log VALUES ('after')"))

        with engine.connect() as conn:
            notes = [row[0] for row in conn.execute(text("SELECT note FROM audit_log ORDER BY note"))]
        assert notes == ["after", "before"]
