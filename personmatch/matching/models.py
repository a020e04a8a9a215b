"""Handles and results produced by the matching engine.

A match moves through two states. ``ComposedMatch`` holds the lazy plan and
nothing has touched the database yet. ``MaterializedMatch`` records a single
execution of that plan into a destination. The plan itself never changes, so
one ComposedMatch can be materialized any number of times.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from sqlalchemy.engine import Dialect
from sqlalchemy.sql.expression import Select

from personmatch.config.models import MatchConfig
from personmatch.domain.fields import NO_MATCH, AgreementLevel, CanonicalField, OutputType

if TYPE_CHECKING:
    from personmatch.backend.database import Bind
    from personmatch.backend.destinations import Destination


class HandleState(str, Enum):
    """Lifecycle state of a match handle."""

    COMPOSED = "composed"
    MATERIALIZED = "materialized"


@dataclass(frozen=True)
class ComposedMatch:
    """A match plan that has been built but not executed.

    Attributes:
        statement: The full SELECT producing the output rows
        output_type: Row shape, key or full
        include_no_match: Whether unmatched source-A ids are appended
        config: Configuration the plan was built from
        columns: Output column names, in order
        fingerprint: Stable identifier derived from the SQL and config
        source_a: Name of source A
        source_b: Name of source B
    """

    statement: Select
    output_type: OutputType
    include_no_match: bool
    config: MatchConfig
    columns: Tuple[str, ...]
    fingerprint: str
    source_a: str = "source_a"
    source_b: str = "source_b"

    @property
    def state(self) -> HandleState:
        return HandleState.COMPOSED

    def to_sql(self, dialect: Optional[Dialect] = None) -> str:
        """Render the plan as SQL text with parameters inlined, for inspection."""
        compiled = self.statement.compile(
            dialect=dialect, compile_kwargs={"literal_binds": True}
        )
        return str(compiled)

    def materialize(self, bind: "Bind", destination: "Destination") -> "MaterializedMatch":
        """Execute the plan into ``destination``. See ``personmatch.materialize``."""
        from .materialize import materialize

        return materialize(bind, self, destination)

    def describe(self) -> Dict[str, Any]:
        return {
            "match_id": self.fingerprint,
            "source_a": self.source_a,
            "source_b": self.source_b,
            "output_type": self.output_type.value,
            "include_no_match": self.include_no_match,
        }


@dataclass(frozen=True)
class MaterializedMatch:
    """Outcome of executing a ComposedMatch.

    ``rows`` is only populated for in-memory destinations.
    """

    composed: ComposedMatch
    destination: "Destination"
    row_count: int
    materialized_at: datetime
    duration_seconds: float
    rows: Optional[List[Dict[str, Any]]] = None

    @property
    def state(self) -> HandleState:
        return HandleState.MATERIALIZED

    @property
    def fingerprint(self) -> str:
        return self.composed.fingerprint


@dataclass(frozen=True)
class PairScore:
    """Agreement levels and decision for one pair, from the Python reference scorer."""

    levels: Dict[CanonicalField, AgreementLevel] = field(default_factory=dict)
    decision: str = NO_MATCH

    @property
    def is_match(self) -> bool:
        return self.decision != NO_MATCH
