"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("REQUIRE_MATCH", "false")

from config.settings import BUNDLED_TABLES_PATH  # noqa: E402
from decision_engine.engine import DecisionEngine  # noqa: E402
from decision_engine.store import TableStore  # noqa: E402


SEASONS = ["Spring", "Summer", "Fall", "Winter"]


def make_table_definition(
    name: str = "test",
    rules: list[dict[str, Any]] | None = None,
    hit_policy: str = "UNIQUE",
    inputs: list[dict[str, Any]] | None = None,
    outputs: list[dict[str, Any]] | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Factory for a two-input (season, guestCount) / one-output (dish) definition."""
    definition: dict[str, Any] = {
        "name": name,
        "hitPolicy": hit_policy,
        "inputs": inputs
        if inputs is not None
        else [
            {"name": "season", "type": "enum", "values": SEASONS},
            {"name": "guestCount", "type": "number"},
        ],
        "outputs": outputs
        if outputs is not None
        else [{"name": "desiredDish", "type": "string"}],
        "rules": rules or [],
    }
    definition.update(extra)
    return definition


def make_rule(
    when: list[Any],
    then: list[Any],
    rule_id: str | None = None,
    priority: int | None = None,
) -> dict[str, Any]:
    """Factory for a rule definition."""
    rule: dict[str, Any] = {"when": when, "then": then}
    if rule_id is not None:
        rule["id"] = rule_id
    if priority is not None:
        rule["priority"] = priority
    return rule


def make_dish_definition(name: str = "dishDecision") -> dict[str, Any]:
    """The dinner scenario: season and guest count decide the dish."""
    return make_table_definition(
        name=name,
        rules=[
            make_rule(['"Spring"', "<= 10"], ["Dry Aged Gourmet Steak"], "spring"),
            make_rule(['"Fall"', "> 10"], ["Stew"], "fallLarge"),
            make_rule(['"Fall"', "<= 10"], ["Spareribs"], "fallSmall"),
            make_rule(['"Summer"', "-"], ["Light Salad and a nice Steak"], "summer"),
        ],
    )


@pytest.fixture
def dish_definition() -> dict[str, Any]:
    """JSON-style definition of the dish table."""
    return make_dish_definition()


@pytest.fixture
def store(dish_definition: dict[str, Any]) -> TableStore:
    """Store holding only the dish table."""
    table_store = TableStore()
    table_store.load(dish_definition)
    return table_store


@pytest.fixture
def engine(store: TableStore) -> DecisionEngine:
    """Engine over the dish-only store."""
    return DecisionEngine(store)


@pytest.fixture
def bundled_engine() -> DecisionEngine:
    """Engine over the tables shipped in resources/."""
    bundled = TableStore()
    bundled.load_path(BUNDLED_TABLES_PATH)
    return DecisionEngine(bundled)
