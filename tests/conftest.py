"""Shared fixtures: an in-memory SQLite backing engine and the people fixture."""

from pathlib import Path

import pytest

from personmatch.backend import open_engine
from personmatch.domain import RecordSource
from personmatch.logging.context import clear_log_context

from tests.helpers import create_people_table, load_people_fixture

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def clean_log_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def engine():
    """In-memory SQLite engine with the similarity functions registered."""
    with open_engine("sqlite://") as eng:
        yield eng


@pytest.fixture
def people_fixture():
    return load_people_fixture(FIXTURES_DIR / "people.yaml")


@pytest.fixture
def people_sources(engine, people_fixture):
    """Create the patients and registry tables and return them as RecordSources."""
    sources = {}
    with engine.begin() as conn:
        for name, spec in people_fixture.items():
            table = create_people_table(conn, name, spec["columns"], spec["rows"])
            sources[name] = RecordSource.of(table, spec["mapping"])
    return sources


@pytest.fixture
def patients(people_sources):
    return people_sources["patients"]


@pytest.fixture
def registry(people_sources):
    return people_sources["registry"]
