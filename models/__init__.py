"""Models module containing Pydantic schemas for decision tables."""

from models.schemas import (
    Aggregation,
    Column,
    ColumnType,
    Condition,
    DecisionTable,
    EvaluationResult,
    HitPolicy,
    HitPolicyKind,
    LiteralValue,
    Rule,
    format_literal,
)

__all__ = [
    "Aggregation",
    "Column",
    "ColumnType",
    "Condition",
    "DecisionTable",
    "EvaluationResult",
    "HitPolicy",
    "HitPolicyKind",
    "LiteralValue",
    "Rule",
    "format_literal",
]
