"""Decision engine module for table-driven rule evaluation."""

from decision_engine.engine import DecisionEngine
from decision_engine.errors import (
    DecisionError,
    EmptyResultError,
    MalformedTableError,
    NotFoundError,
    OverlappingRulesError,
    TypeMismatchError,
)
from decision_engine.store import TableStore

__all__ = [
    "DecisionEngine",
    "DecisionError",
    "EmptyResultError",
    "MalformedTableError",
    "NotFoundError",
    "OverlappingRulesError",
    "TableStore",
    "TypeMismatchError",
]
