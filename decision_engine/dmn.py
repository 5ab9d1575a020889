"""Reader for DMN XML decision tables (DMN 1.1 through 1.3 namespaces).

Each ``<decision>`` holding a ``<decisionTable>`` becomes one table definition
in the same shape :func:`decision_engine.parser.parse_table` accepts, keyed by
the decision id. Only simple unary tests are supported in input entries.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

from decision_engine.errors import MalformedTableError
from decision_engine.parser import parse_table, split_string_items, split_string_list
from models.schemas import DecisionTable


def _text(element: ET.Element | None) -> str | None:
    if element is None:
        return None
    node = element.find("{*}text")
    if node is None or node.text is None:
        return None
    return node.text.strip()


def _input_column(element: ET.Element, position: int, table: str) -> dict[str, Any]:
    expression = element.find("{*}inputExpression")
    name = _text(expression) or element.get("label")
    if not name:
        raise MalformedTableError(f"Input {position + 1} has no expression", table=table)
    column: dict[str, Any] = {
        "name": name,
        "type": (expression.get("typeRef") if expression is not None else None) or "string",
    }
    values = _text(element.find("{*}inputValues"))
    if values and column["type"] == "string":
        column["values"] = split_string_items(values)
    return column


def _output_column(element: ET.Element, position: int, table: str) -> dict[str, Any]:
    name = element.get("name") or element.get("label")
    if not name:
        raise MalformedTableError(f"Output {position + 1} has no name", table=table)
    column: dict[str, Any] = {"name": name, "type": element.get("typeRef") or "string"}
    default = _text(element.find("{*}defaultOutputEntry"))
    if default:
        column["default"] = default
    return column


def _priorities(
    table_element: ET.Element,
    rules: list[dict[str, Any]],
    table: str,
) -> None:
    # PRIORITY order comes from the first output's outputValues, earliest wins
    first_output = table_element.find("{*}output")
    values_text = _text(first_output.find("{*}outputValues")) if first_output is not None else None
    if not values_text:
        raise MalformedTableError(
            "PRIORITY tables need outputValues on the first output", table=table
        )
    ordering = split_string_list(values_text)
    for rule in rules:
        if not rule["then"]:
            raise MalformedTableError(f"Rule '{rule['id']}' has no outputEntry", table=table)
        value = rule["then"][0]
        value = split_string_list(value)[0] if value else value
        if value not in ordering:
            raise MalformedTableError(
                f"Rule '{rule['id']}' output {value!r} is not listed in outputValues",
                table=table,
            )
        rule["priority"] = len(ordering) - ordering.index(value)


def _table_definition(decision: ET.Element) -> dict[str, Any] | None:
    table_element = decision.find("{*}decisionTable")
    if table_element is None:
        return None

    name = decision.get("id") or decision.get("name")
    if not name:
        raise MalformedTableError("Decision without id or name")

    inputs = [
        _input_column(e, i, name) for i, e in enumerate(table_element.findall("{*}input"))
    ]
    outputs = [
        _output_column(e, i, name) for i, e in enumerate(table_element.findall("{*}output"))
    ]

    rules: list[dict[str, Any]] = []
    for i, rule_element in enumerate(table_element.findall("{*}rule")):
        description = rule_element.find("{*}description")
        rules.append(
            {
                "id": rule_element.get("id") or f"rule-{i + 1}",
                "when": [_text(e) for e in rule_element.findall("{*}inputEntry")],
                "then": [_text(e) or None for e in rule_element.findall("{*}outputEntry")],
                "description": description.text.strip()
                if description is not None and description.text
                else None,
            }
        )

    hit_policy = table_element.get("hitPolicy", "UNIQUE")
    if hit_policy.strip().upper() == "PRIORITY":
        _priorities(table_element, rules, name)

    return {
        "name": name,
        "description": decision.get("name"),
        "hitPolicy": hit_policy,
        "aggregation": table_element.get("aggregation"),
        "inputs": inputs,
        "outputs": outputs,
        "rules": rules,
    }


def parse_dmn_definitions(source: str | bytes) -> list[dict[str, Any]]:
    """Convert DMN XML into table definitions."""
    if isinstance(source, str):
        source = source.encode("utf-8")
    try:
        root = ET.fromstring(source)
    except ET.ParseError as e:
        raise MalformedTableError(f"Invalid DMN XML: {e}") from e

    definitions = []
    for decision in root.findall(".//{*}decision"):
        definition = _table_definition(decision)
        if definition is not None:
            definitions.append(definition)
    return definitions


def parse_dmn(source: str | bytes) -> list[DecisionTable]:
    """Parse every decision table found in a DMN document."""
    return [parse_table(d) for d in parse_dmn_definitions(source)]


def load_dmn_file(path: Path) -> list[DecisionTable]:
    """Read and parse a .dmn file."""
    return parse_dmn(path.read_bytes())
