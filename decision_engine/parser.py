"""Parsing of declarative table definitions and unary-test cell text."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from decision_engine.errors import MalformedTableError
from models.schemas import (
    Aggregation,
    Column,
    ColumnType,
    Condition,
    DecisionTable,
    HitPolicy,
    HitPolicyKind,
    LiteralValue,
    Rule,
    format_literal,
)


TYPE_ALIASES: dict[str, ColumnType] = {
    "string": ColumnType.STRING,
    "str": ColumnType.STRING,
    "number": ColumnType.NUMBER,
    "integer": ColumnType.NUMBER,
    "int": ColumnType.NUMBER,
    "long": ColumnType.NUMBER,
    "double": ColumnType.NUMBER,
    "float": ColumnType.NUMBER,
    "boolean": ColumnType.BOOLEAN,
    "bool": ColumnType.BOOLEAN,
    "enum": ColumnType.ENUM,
}

HIT_POLICY_ABBREVIATIONS: dict[str, tuple[HitPolicyKind, Aggregation | None]] = {
    "U": (HitPolicyKind.UNIQUE, None),
    "F": (HitPolicyKind.FIRST, None),
    "P": (HitPolicyKind.PRIORITY, None),
    "A": (HitPolicyKind.ANY, None),
    "R": (HitPolicyKind.RULE_ORDER, None),
    "C": (HitPolicyKind.COLLECT, None),
    "C+": (HitPolicyKind.COLLECT, Aggregation.SUM),
    "C<": (HitPolicyKind.COLLECT, Aggregation.MIN),
    "C>": (HitPolicyKind.COLLECT, Aggregation.MAX),
    "C#": (HitPolicyKind.COLLECT, Aggregation.COUNT),
}

_RANGE_PATTERN = re.compile(r"^([\[\(\]])\s*(.+?)\s*\.\.\s*(.+?)\s*([\]\)\[])$")
_COMPARE_PATTERN = re.compile(r"^(<=|>=|<|>)\s*(.+)$")
_STRING_ITEM_PATTERN = re.compile(r'\s*("(?:[^"\\]|\\.)*"|[^,]+)\s*(?:,|$)')
_ESCAPE_PATTERN = re.compile(r"\\(.)", re.DOTALL)


# =============================================================================
# Literals
# =============================================================================


def parse_column_type(raw: Any) -> ColumnType:
    """Resolve a declared type name (DMN typeRef aliases included)."""
    if isinstance(raw, ColumnType):
        return raw
    if not isinstance(raw, str) or raw.strip().lower() not in TYPE_ALIASES:
        raise MalformedTableError(f"Unrecognized column type: {raw!r}")
    return TYPE_ALIASES[raw.strip().lower()]


def _unquote(text: str) -> str:
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return _ESCAPE_PATTERN.sub(r"\1", text[1:-1])
    return text


def _parse_number(text: str) -> int | float:
    text = text.strip()
    try:
        return int(text)
    except ValueError:
        return float(text)


def parse_literal(raw: Any, column: Column) -> LiteralValue:
    """Parse one literal against the column type.

    Raises ValueError when the literal does not fit the type.
    """
    if column.type is ColumnType.NUMBER:
        if isinstance(raw, bool):
            raise ValueError(f"boolean {raw!r} is not a number")
        if isinstance(raw, (int, float)):
            return raw
        if isinstance(raw, str):
            return _parse_number(raw)
        raise ValueError(f"{raw!r} is not a number")

    if column.type is ColumnType.BOOLEAN:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str) and raw.strip().lower() in ("true", "false"):
            return raw.strip().lower() == "true"
        raise ValueError(f"{raw!r} is not a boolean")

    if not isinstance(raw, str):
        raise ValueError(f"{raw!r} is not a string")
    value = _unquote(raw.strip())
    if column.type is ColumnType.ENUM and value not in column.allowed:
        raise ValueError(f"{value!r} is not one of {list(column.allowed)}")
    return value


def split_string_items(text: str) -> list[str]:
    """Split a comma-separated list of strings, leaving quoted items quoted."""
    return [m.group(1).strip() for m in _STRING_ITEM_PATTERN.finditer(text)]


def split_string_list(text: str) -> list[str]:
    """Split a comma-separated list of (optionally quoted) strings."""
    return [_unquote(item) for item in split_string_items(text)]


def _split_items(text: str, column: Column) -> list[str]:
    if column.type in (ColumnType.STRING, ColumnType.ENUM):
        return split_string_items(text)
    return [item.strip() for item in text.split(",")]


# =============================================================================
# Conditions
# =============================================================================


def _membership(values: Sequence[LiteralValue]) -> Condition:
    if len(values) == 1:
        return Condition(kind="equals", values=tuple(values))
    return Condition(kind="in", values=tuple(values))


def parse_condition(raw: Any, column: Column) -> Condition:
    """Parse one input cell (unary test text or JSON literal) into a Condition.

    Raises ValueError when the cell does not fit the column.
    """
    if raw is None:
        return Condition(kind="any")
    if isinstance(raw, list):
        if not raw:
            raise ValueError("empty value list")
        return _membership([parse_literal(item, column) for item in raw])
    if not isinstance(raw, str):
        return _membership([parse_literal(raw, column)])

    text = raw.strip()
    if text in ("", "-"):
        return Condition(kind="any")
    if text.lower().startswith("not("):
        raise ValueError(f"negated unary test {text!r} is not supported")

    if column.type is ColumnType.NUMBER:
        range_match = _RANGE_PATTERN.match(text)
        if range_match:
            opening, low, high, closing = range_match.groups()
            low_value, high_value = _parse_number(low), _parse_number(high)
            if low_value > high_value:
                raise ValueError(f"range {text!r} is empty")
            return Condition(
                kind="range",
                low=low_value,
                high=high_value,
                low_inclusive=opening == "[",
                high_inclusive=closing == "]",
            )
        compare_match = _COMPARE_PATTERN.match(text)
        if compare_match:
            operator, bound = compare_match.groups()
            return Condition(kind="compare", operator=operator, bound=_parse_number(bound))
    elif _COMPARE_PATTERN.match(text) or _RANGE_PATTERN.match(text):
        raise ValueError(f"comparison {text!r} requires a number column")

    items = _split_items(text, column)
    if not items or any(item == "" for item in items):
        raise ValueError(f"cannot parse {text!r}")
    return _membership([parse_literal(item, column) for item in items])


# =============================================================================
# Hit policy
# =============================================================================


def parse_hit_policy(
    raw: Any = None,
    aggregation: Any = None,
    distinct: bool = False,
) -> HitPolicy:
    """Parse a hit policy name, abbreviation or 'COLLECT SUM' style string."""
    if raw is None:
        raw = HitPolicyKind.UNIQUE.value
    if not isinstance(raw, str):
        raise MalformedTableError(f"Unrecognized hit policy: {raw!r}")

    text = raw.strip().upper().replace("_", " ")
    agg: Aggregation | None = None

    if text in HIT_POLICY_ABBREVIATIONS:
        kind, agg = HIT_POLICY_ABBREVIATIONS[text]
    else:
        parts = text.split()
        if len(parts) == 2 and parts[0] == "COLLECT":
            text, agg_name = parts
            try:
                agg = Aggregation(agg_name)
            except ValueError as e:
                raise MalformedTableError(f"Unrecognized aggregation: {agg_name!r}") from e
        try:
            kind = HitPolicyKind(text)
        except ValueError as e:
            raise MalformedTableError(f"Unrecognized hit policy: {raw!r}") from e

    if aggregation is not None:
        try:
            agg = Aggregation(str(aggregation).strip().upper())
        except ValueError as e:
            raise MalformedTableError(f"Unrecognized aggregation: {aggregation!r}") from e

    if agg is not None and kind is not HitPolicyKind.COLLECT:
        raise MalformedTableError(f"Aggregation {agg.value} requires the COLLECT hit policy")
    if distinct and kind is not HitPolicyKind.COLLECT:
        raise MalformedTableError("distinct requires the COLLECT hit policy")

    return HitPolicy(kind=kind, aggregation=agg, distinct=bool(distinct))


# =============================================================================
# Tables
# =============================================================================


def _parse_column(raw: Any, table: str, *, is_output: bool) -> Column:
    if not isinstance(raw, Mapping) or not raw.get("name"):
        raise MalformedTableError("Column definition requires a 'name'", table=table)

    name = str(raw["name"])
    try:
        column_type = parse_column_type(raw.get("type", "string"))
    except MalformedTableError as e:
        raise MalformedTableError(f"Column '{name}': {e.message}", table=table) from e
    allowed = raw.get("values") or ()
    if allowed and column_type is ColumnType.STRING:
        column_type = ColumnType.ENUM
    if column_type is ColumnType.ENUM:
        if not isinstance(allowed, list) or not allowed or not all(isinstance(v, str) for v in allowed):
            raise MalformedTableError(
                f"Enum column '{name}' requires a list of string values", table=table
            )
    else:
        # value lists only constrain string columns
        allowed = ()

    column = Column(
        name=name,
        type=column_type,
        allowed=tuple(_unquote(v.strip()) for v in allowed),
        optional=bool(raw.get("optional", False)) and not is_output,
    )

    default = raw.get("default")
    if default is not None:
        if not is_output:
            raise MalformedTableError(
                f"Input column '{name}' cannot declare a default", table=table
            )
        try:
            column = column.model_copy(update={"default": parse_literal(default, column)})
        except ValueError as e:
            raise MalformedTableError(
                f"Default of column '{name}': {e}", table=table
            ) from e
    return column


def _parse_columns(raw: Any, table: str, *, is_output: bool) -> tuple[Column, ...]:
    label = "outputs" if is_output else "inputs"
    if not isinstance(raw, list):
        raise MalformedTableError(f"'{label}' must be a list", table=table)
    columns = tuple(_parse_column(c, table, is_output=is_output) for c in raw)
    names = [c.name for c in columns]
    if len(set(names)) != len(names):
        raise MalformedTableError(f"Duplicate column names in {label}: {names}", table=table)
    return columns


def _parse_rule(
    raw: Any,
    index: int,
    inputs: Sequence[Column],
    outputs: Sequence[Column],
    table: str,
) -> Rule:
    if not isinstance(raw, Mapping):
        raise MalformedTableError(f"Rule {index + 1} must be a mapping", table=table)

    rule_id = str(raw.get("id") or f"rule-{index + 1}")
    when = raw.get("when", [])
    then = raw.get("then", [])
    if not isinstance(when, list) or len(when) != len(inputs):
        raise MalformedTableError(
            f"Rule '{rule_id}' has {len(when) if isinstance(when, list) else 'no'} "
            f"conditions, expected {len(inputs)}",
            table=table,
        )
    if not isinstance(then, list) or len(then) != len(outputs):
        raise MalformedTableError(
            f"Rule '{rule_id}' has {len(then) if isinstance(then, list) else 'no'} "
            f"outputs, expected {len(outputs)}",
            table=table,
        )

    try:
        conditions = tuple(parse_condition(cell, col) for cell, col in zip(when, inputs))
        values = tuple(
            None if cell is None else parse_literal(cell, col)
            for cell, col in zip(then, outputs)
        )
    except ValueError as e:
        raise MalformedTableError(f"Rule '{rule_id}': {e}", table=table) from e

    priority = raw.get("priority", 0)
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise MalformedTableError(f"Rule '{rule_id}' priority must be an integer", table=table)

    try:
        return Rule(
            id=rule_id,
            index=index,
            conditions=conditions,
            outputs=values,
            priority=priority,
            description=raw.get("description"),
        )
    except ValidationError as e:
        raise MalformedTableError(f"Rule '{rule_id}': {e}", table=table) from e


def _check_aggregation(policy: HitPolicy, outputs: Sequence[Column], table: str) -> None:
    if policy.aggregation is None:
        return
    if len(outputs) != 1:
        raise MalformedTableError(
            f"{policy} requires exactly one output column", table=table
        )
    if policy.aggregation is not Aggregation.COUNT and outputs[0].type is not ColumnType.NUMBER:
        raise MalformedTableError(f"{policy} requires a number output column", table=table)


def parse_table(definition: Mapping[str, Any]) -> DecisionTable:
    """Parse a declarative definition into a DecisionTable without registering it."""
    if not isinstance(definition, Mapping):
        raise MalformedTableError("Table definition must be a mapping")
    name = definition.get("name")
    if not isinstance(name, str) or not name:
        raise MalformedTableError("Table definition requires a 'name'")

    inputs = _parse_columns(definition.get("inputs", []), name, is_output=False)
    outputs = _parse_columns(definition.get("outputs"), name, is_output=True)
    if not outputs:
        raise MalformedTableError("Table requires at least one output column", table=name)

    try:
        policy = parse_hit_policy(
            definition.get("hitPolicy"),
            definition.get("aggregation"),
            bool(definition.get("distinct", False)),
        )
    except MalformedTableError as e:
        raise MalformedTableError(e.message, table=name) from e
    _check_aggregation(policy, outputs, name)

    raw_rules = definition.get("rules", [])
    if not isinstance(raw_rules, list):
        raise MalformedTableError("'rules' must be a list", table=name)
    rules = tuple(
        _parse_rule(raw, i, inputs, outputs, name) for i, raw in enumerate(raw_rules)
    )
    ids = [r.id for r in rules]
    if len(set(ids)) != len(ids):
        raise MalformedTableError(f"Duplicate rule ids: {ids}", table=name)

    no_match = definition.get("noMatch", "empty")
    if no_match not in ("empty", "error"):
        raise MalformedTableError(f"noMatch must be 'empty' or 'error', got {no_match!r}", table=name)

    try:
        return DecisionTable(
            name=name,
            inputs=inputs,
            outputs=outputs,
            rules=rules,
            hit_policy=policy,
            no_match=no_match,
            description=definition.get("description"),
        )
    except ValidationError as e:
        raise MalformedTableError(str(e), table=name) from e


def _literal_definition(value: LiteralValue | None) -> LiteralValue | None:
    # strings are re-read through _unquote, so they are written quoted
    if isinstance(value, str):
        return format_literal(value)
    return value


def _column_definition(column: Column) -> dict[str, Any]:
    d: dict[str, Any] = {"name": column.name, "type": column.type.value}
    if column.allowed:
        d["values"] = [format_literal(v) for v in column.allowed]
    if column.optional:
        d["optional"] = True
    if column.default is not None:
        d["default"] = _literal_definition(column.default)
    return d


def table_to_definition(table: DecisionTable) -> dict[str, Any]:
    """Structural description of a table; parse_table() of it yields an equal table."""
    d: dict[str, Any] = {
        "name": table.name,
        "hitPolicy": str(table.hit_policy),
        "inputs": [_column_definition(c) for c in table.inputs],
        "outputs": [_column_definition(c) for c in table.outputs],
        "rules": [],
    }
    if table.hit_policy.distinct:
        d["distinct"] = True
    if table.no_match != "empty":
        d["noMatch"] = table.no_match
    if table.description is not None:
        d["description"] = table.description

    for rule in table.rules:
        entry: dict[str, Any] = {
            "id": rule.id,
            "when": [c.to_text() for c in rule.conditions],
            "then": [_literal_definition(v) for v in rule.outputs],
        }
        if rule.priority:
            entry["priority"] = rule.priority
        if rule.description is not None:
            entry["description"] = rule.description
        d["rules"].append(entry)
    return d
