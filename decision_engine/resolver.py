"""Hit policy resolution: turn the matched rules into an evaluation result."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from decision_engine.errors import OverlappingRulesError
from models.schemas import (
    Aggregation,
    Column,
    EvaluationResult,
    HitPolicy,
    HitPolicyKind,
    Rule,
)


def _row(rule: Rule, outputs: Sequence[Column]) -> dict[str, Any]:
    return {column.name: value for column, value in zip(outputs, rule.outputs)}


def _defaults(outputs: Sequence[Column]) -> list[dict[str, Any]]:
    if all(column.default is None for column in outputs):
        return []
    return [{column.name: column.default for column in outputs}]


def _overlap(table: str, matched: Sequence[Rule], policy: HitPolicy) -> OverlappingRulesError:
    ids = [rule.id for rule in matched]
    return OverlappingRulesError(
        f"{policy} hit policy violated: rules {ids} all matched",
        table=table,
        details={"rules": ids},
    )


def _aggregate(aggregation: Aggregation, values: list[Any]) -> Any:
    present = [v for v in values if v is not None]
    if aggregation is Aggregation.COUNT:
        return len(present)
    if not present:
        return None
    if aggregation is Aggregation.SUM:
        return sum(present)
    if aggregation is Aggregation.MIN:
        return min(present)
    return max(present)


def resolve(
    policy: HitPolicy,
    matched: Sequence[Rule],
    outputs: Sequence[Column],
    table: str = "",
) -> EvaluationResult:
    """
    Combine the matched rules (in table order) according to the hit policy.

    Single-result policies fall back to the output columns' defaults when
    nothing matched. Neither the rules nor the columns are modified.
    """
    kind = policy.kind
    chosen: list[Rule]
    rows: list[dict[str, Any]]

    if kind is HitPolicyKind.UNIQUE:
        if len(matched) > 1:
            raise _overlap(table, matched, policy)
        chosen = list(matched)

    elif kind is HitPolicyKind.FIRST:
        chosen = list(matched[:1])

    elif kind is HitPolicyKind.PRIORITY:
        # max() keeps the first of equal priorities, i.e. the earliest rule
        chosen = [max(matched, key=lambda r: r.priority)] if matched else []

    elif kind is HitPolicyKind.ANY:
        distinct_outputs = {rule.outputs for rule in matched}
        if len(distinct_outputs) > 1:
            raise _overlap(table, matched, policy)
        chosen = list(matched[:1])

    elif kind in (HitPolicyKind.RULE_ORDER, HitPolicyKind.COLLECT):
        chosen = list(matched)

    else:
        raise ValueError(f"Unsupported hit policy: {kind}")

    rows = [_row(rule, outputs) for rule in chosen]

    if kind is HitPolicyKind.COLLECT:
        if policy.distinct:
            unique_rows: list[dict[str, Any]] = []
            for row in rows:
                if row not in unique_rows:
                    unique_rows.append(row)
            rows = unique_rows
        if policy.aggregation is not None:
            name = outputs[0].name
            value = _aggregate(policy.aggregation, [row[name] for row in rows])
            rows = [] if value is None else [{name: value}]

    elif not policy.multiple and not rows:
        rows = _defaults(outputs)

    return EvaluationResult(
        table=table,
        hit_policy=str(policy),
        outputs=rows,
        matched_rules=[rule.id for rule in chosen],
        multiple=policy.multiple,
    )
