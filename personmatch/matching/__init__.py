"""Pushdown matching of person records.

This module provides:
- match / MatchComposer: build a lazy plan from two record sources
- materialize: execute a plan into a destination
- ComposedMatch / MaterializedMatch: the two states of a match handle
- agreement_expression / decision_expression: comparator and tier SQL
- score_pair: Python reference scorer for already-normalized values
"""

from .assembler import assemble, output_columns
from .composer import MatchComposer, candidate_pairs, match, prepare_source
from .materialize import materialize
from .models import ComposedMatch, HandleState, MaterializedMatch, PairScore
from .scorer import (
    agreement_expression,
    compare_values,
    count_agreements,
    decide,
    decision_expression,
    score_pair,
)

__all__ = [
    "MatchComposer",
    "match",
    "materialize",
    "prepare_source",
    "candidate_pairs",
    "assemble",
    "output_columns",
    "ComposedMatch",
    "MaterializedMatch",
    "HandleState",
    "PairScore",
    "agreement_expression",
    "decision_expression",
    "count_agreements",
    "compare_values",
    "decide",
    "score_pair",
]
