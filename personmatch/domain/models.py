"""Record sources and the field mappings that describe them.

A RecordSource is a lazily-evaluated handle to a table-like object in the
backing database: a reflected Table, a subquery, or a ``table()`` construct.
Nothing here executes SQL except ``RecordSource.reflect``, which inspects the
live schema.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from sqlalchemy import MetaData, Table
from sqlalchemy.engine import Connection
from sqlalchemy.sql.expression import ColumnElement, FromClause, TableClause

from personmatch.config.exceptions import ConfigurationError, describe_validation_errors

from .fields import COMPARABLE_FIELDS, CanonicalField


class FieldMapping(BaseModel):
    """Maps the canonical field names onto a source's column names.

    All five keys must be present. ``id`` must name a column; the comparable
    fields may be ``None`` to declare that the source has no such column, in
    which case that field never agrees with anything.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(..., min_length=1, description="Unique record identifier column")
    forename: Optional[str] = Field(..., description="Forename column, or null if absent")
    surname: Optional[str] = Field(..., description="Surname column, or null if absent")
    dob: Optional[str] = Field(..., description="Date of birth column, or null if absent")
    postcode: Optional[str] = Field(..., description="Postcode column, or null if absent")

    @field_validator("id", "forename", "surname", "dob", "postcode")
    @classmethod
    def strip_column_names(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        stripped = v.strip()
        if not stripped:
            raise ValueError("Column name cannot be empty or whitespace-only")
        return stripped

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FieldMapping":
        """Build a mapping from a plain dict, raising ConfigurationError on failure."""
        if isinstance(data, FieldMapping):
            return data
        if not isinstance(data, Mapping):
            raise ConfigurationError(
                f"Field mapping must be a mapping, got {type(data).__name__}",
                suggestions=[_MAPPING_HINT],
            )
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            raise ConfigurationError(
                "Invalid field mapping",
                errors=describe_validation_errors(e),
                suggestions=[_MAPPING_HINT],
            ) from e

    def column_name(self, field: CanonicalField) -> Optional[str]:
        return getattr(self, CanonicalField(field).value)

    def is_mapped(self, field: CanonicalField) -> bool:
        return self.column_name(field) is not None

    def mapped_fields(self) -> List[CanonicalField]:
        """Comparable fields that have a column, in canonical order."""
        return [f for f in COMPARABLE_FIELDS if self.is_mapped(f)]


_MAPPING_HINT = (
    "Provide exactly the keys id, forename, surname, dob, postcode; "
    "use null for a field the source does not have"
)


@dataclass(frozen=True)
class RecordSource:
    """A table-like selectable plus the mapping onto canonical fields."""

    selectable: FromClause
    mapping: FieldMapping
    name: str = "source"

    @classmethod
    def of(
        cls,
        selectable: Union["RecordSource", FromClause],
        mapping: Union[FieldMapping, Mapping[str, Any], None] = None,
        name: Optional[str] = None,
    ) -> "RecordSource":
        """Coerce a selectable (or an existing source) plus mapping into a RecordSource.

        Raises:
            ConfigurationError: If the mapping is invalid or names columns the
                selectable does not have
        """
        if isinstance(selectable, RecordSource):
            source = selectable
            if mapping is not None:
                source = replace(source, mapping=FieldMapping.from_dict(mapping))
            if name is not None:
                source = replace(source, name=name)
        else:
            if mapping is None:
                raise ConfigurationError(
                    "A field mapping is required for every record source",
                    suggestions=[_MAPPING_HINT],
                )
            source = cls(
                selectable=selectable,
                mapping=FieldMapping.from_dict(mapping),
                name=name or (selectable.name if isinstance(selectable, TableClause) else "source"),
            )
        source.validate()
        return source

    @classmethod
    def reflect(
        cls,
        connection: Connection,
        table_name: str,
        mapping: Union[FieldMapping, Mapping[str, Any]],
        schema: Optional[str] = None,
    ) -> "RecordSource":
        """Build a source from an existing table, reading its columns from the database."""
        table = Table(table_name, MetaData(), schema=schema, autoload_with=connection)
        return cls.of(table, mapping, name=table_name)

    def validate(self) -> None:
        """Check that every mapped column exists on the selectable.

        Raises:
            ConfigurationError: Listing every missing column
        """
        available = set(self.selectable.c.keys())
        errors = []
        for field in CanonicalField:
            column = self.mapping.column_name(field)
            if column is not None and column not in available:
                errors.append(f"{self.name}: column '{column}' mapped as {field.value} does not exist")
        if errors:
            raise ConfigurationError(
                f"Field mapping does not match the columns of '{self.name}'",
                errors=errors,
                suggestions=[f"Available columns: {', '.join(sorted(available))}"],
            )

    def is_mapped(self, field: CanonicalField) -> bool:
        return self.mapping.is_mapped(field)

    def column(self, field: CanonicalField) -> ColumnElement:
        """Return the selectable's column for a canonical field.

        Raises:
            ConfigurationError: If the field is unmapped or its column is absent
        """
        field = CanonicalField(field)
        name = self.mapping.column_name(field)
        if name is None:
            raise ConfigurationError(f"{self.name}: field '{field.value}' is not mapped")
        try:
            return self.selectable.c[name]
        except KeyError:
            raise ConfigurationError(
                f"{self.name}: column '{name}' mapped as {field.value} does not exist"
            ) from None

    def with_selectable(self, selectable: FromClause) -> "RecordSource":
        return replace(self, selectable=selectable)

    def describe(self) -> Dict[str, Any]:
        """Loggable summary of the source."""
        return {
            "name": self.name,
            "mapped_fields": [f.value for f in self.mapping.mapped_fields()],
        }
