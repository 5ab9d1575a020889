"""Evaluation façade: the single entry point request handlers call."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from config.logging import get_logger
from config.settings import Settings
from decision_engine.errors import EmptyResultError
from decision_engine.matcher import matches
from decision_engine.resolver import resolve
from decision_engine.store import TableStore
from models.schemas import EvaluationResult


logger = get_logger("decision_engine.engine")


class DecisionEngine:
    """Evaluates input rows against the tables held by a TableStore."""

    def __init__(self, store: TableStore, require_match: bool = False) -> None:
        self.store = store
        self.require_match = require_match

    @classmethod
    def from_settings(cls, settings: Settings) -> DecisionEngine:
        """
        Build the store from settings.tables_path and wrap it in an engine.

        Any malformed definition aborts construction.
        """
        store = TableStore()
        store.load_path(settings.tables_path)
        return cls(store, require_match=settings.require_match)

    def evaluate(
        self,
        table_name: str,
        input_row: Mapping[str, Any],
        *,
        require_match: bool | None = None,
    ) -> EvaluationResult:
        """
        Evaluate one input row against the named table.

        Steps:
        1. Look up the table (NotFoundError)
        2. Type-check the row and collect matching rules (TypeMismatchError)
        3. Resolve per hit policy (OverlappingRulesError)
        4. Enforce a match when requested (EmptyResultError)

        require_match overrides both the table's noMatch setting and the
        engine default when given.
        """
        table = self.store.get(table_name)
        matched = matches(table, input_row)
        result = resolve(table.hit_policy, matched, table.outputs, table=table.name)

        if require_match is None:
            require_match = self.require_match or table.no_match == "error"
        if require_match and result.is_empty:
            raise EmptyResultError(
                f"No rule of '{table.name}' matched the input",
                table=table.name,
                details={"input": dict(input_row)},
            )

        logger.debug(
            "Decision evaluated",
            table=table.name,
            hit_policy=result.hit_policy,
            matched_rules=result.matched_rules,
        )
        return result
