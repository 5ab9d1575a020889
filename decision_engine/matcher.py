"""Rule matching: which rules of a table are satisfied by an input row."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from decision_engine.errors import TypeMismatchError
from models.schemas import Column, ColumnType, Condition, DecisionTable, Rule


def check_input(table: DecisionTable, input_row: Mapping[str, Any]) -> list[Any]:
    """
    Validate an input row against the table's input columns.

    Returns the input values in column order (None for absent optional
    columns). Unknown keys are ignored.

    Raises:
        TypeMismatchError: a required column is missing, or a value's runtime
            type disagrees with the declared column type.
    """
    values: list[Any] = []
    for column in table.inputs:
        if column.name not in input_row or input_row[column.name] is None:
            if column.optional:
                values.append(None)
                continue
            raise TypeMismatchError(
                f"Missing required input '{column.name}'",
                table=table.name,
                details={"column": column.name, "expected": _describe(column)},
            )

        value = input_row[column.name]
        if not column.accepts(value):
            raise TypeMismatchError(
                f"Input '{column.name}' expects {_describe(column)}, "
                f"got {type(value).__name__} {value!r}",
                table=table.name,
                details={
                    "column": column.name,
                    "expected": _describe(column),
                    "actual": type(value).__name__,
                },
            )
        values.append(value)
    return values


def _describe(column: Column) -> str:
    if column.type is ColumnType.ENUM:
        return f"one of {list(column.allowed)}"
    return column.type.value


def satisfies(condition: Condition, value: Any) -> bool:
    """Check a single condition against an already type-checked value."""
    if condition.kind == "any":
        return True
    if value is None:
        return False

    if condition.kind == "equals":
        return _equal(value, condition.values[0])
    if condition.kind == "in":
        return any(_equal(value, v) for v in condition.values)
    if condition.kind == "compare":
        bound = condition.bound
        if condition.operator == "<":
            return value < bound
        if condition.operator == "<=":
            return value <= bound
        if condition.operator == ">":
            return value > bound
        return value >= bound
    if condition.kind == "range":
        above = value >= condition.low if condition.low_inclusive else value > condition.low
        below = value <= condition.high if condition.high_inclusive else value < condition.high
        return above and below
    raise ValueError(f"Unknown condition kind: {condition.kind}")


def _equal(value: Any, literal: Any) -> bool:
    # bool is an int subclass; keep True from equalling 1
    if isinstance(value, bool) or isinstance(literal, bool):
        return isinstance(value, bool) and isinstance(literal, bool) and value is literal
    return value == literal


def rule_matches(rule: Rule, values: list[Any]) -> bool:
    """A rule matches iff every one of its conditions is satisfied."""
    return all(satisfies(c, v) for c, v in zip(rule.conditions, values))


def matches(table: DecisionTable, input_row: Mapping[str, Any]) -> list[Rule]:
    """Return the rules satisfied by input_row, in table order."""
    values = check_input(table, input_row)
    return [rule for rule in table.rules if rule_matches(rule, values)]
