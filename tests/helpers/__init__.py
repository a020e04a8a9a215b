"""Test helper utilities for personmatch tests."""

from .people import create_people_table, load_people_fixture

__all__ = ["create_people_table", "load_people_fixture"]
