"""Pydantic schemas for decision tables and evaluation results."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


LiteralValue = Union[bool, int, float, str]


# =============================================================================
# Columns
# =============================================================================


class ColumnType(str, Enum):
    """Semantic type of an input or output column."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"


class Column(BaseModel):
    """An input or output column of a decision table."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Variable name the column reads or writes")
    type: ColumnType = Field(default=ColumnType.STRING, description="Semantic type")
    allowed: tuple[str, ...] = Field(
        default=(), description="Allowed literals for enum columns"
    )
    optional: bool = Field(
        default=False, description="Input may be absent from the input row"
    )
    default: LiteralValue | None = Field(
        default=None, description="Output value used when no rule matched"
    )

    def accepts(self, value: Any) -> bool:
        """Check a runtime value against the declared type."""
        if self.type is ColumnType.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if self.type is ColumnType.BOOLEAN:
            return isinstance(value, bool)
        if self.type is ColumnType.ENUM:
            return isinstance(value, str) and value in self.allowed
        return isinstance(value, str)


# =============================================================================
# Conditions and rules
# =============================================================================


ConditionKind = Literal["any", "equals", "in", "compare", "range"]
CompareOperator = Literal["<", "<=", ">", ">="]


def format_literal(value: LiteralValue) -> str:
    """Render a literal as unary-test text; strings are quoted with \\ and " escaped."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return repr(value)


class Condition(BaseModel):
    """One cell of a rule: a simple unary test over a single input value."""

    model_config = ConfigDict(frozen=True)

    kind: ConditionKind = Field(default="any", description="Condition variant")
    values: tuple[LiteralValue, ...] = Field(
        default=(), description="Literal(s) for equals / in"
    )
    operator: CompareOperator | None = Field(default=None, description="Comparison operator")
    bound: int | float | None = Field(default=None, description="Comparison bound")
    low: int | float | None = Field(default=None, description="Range lower end")
    high: int | float | None = Field(default=None, description="Range upper end")
    low_inclusive: bool = Field(default=True)
    high_inclusive: bool = Field(default=True)

    def to_text(self) -> str:
        """Render the canonical unary-test text for this condition."""
        if self.kind == "any":
            return "-"
        if self.kind in ("equals", "in"):
            return ", ".join(format_literal(v) for v in self.values)
        if self.kind == "compare":
            return f"{self.operator} {format_literal(self.bound)}"  # type: ignore[arg-type]
        opening = "[" if self.low_inclusive else "("
        closing = "]" if self.high_inclusive else ")"
        return (
            f"{opening}{format_literal(self.low)}.."  # type: ignore[arg-type]
            f"{format_literal(self.high)}{closing}"  # type: ignore[arg-type]
        )


class Rule(BaseModel):
    """A single row of a decision table."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Rule identifier, unique within the table")
    index: int = Field(ge=0, description="Position of the rule in table order")
    conditions: tuple[Condition, ...] = Field(description="One condition per input column")
    outputs: tuple[LiteralValue | None, ...] = Field(description="One value per output column")
    priority: int = Field(default=0, description="Used by the PRIORITY hit policy")
    description: str | None = Field(default=None, description="Annotation")


# =============================================================================
# Hit policies and tables
# =============================================================================


class HitPolicyKind(str, Enum):
    """How matching rules are combined into a result."""

    UNIQUE = "UNIQUE"
    FIRST = "FIRST"
    PRIORITY = "PRIORITY"
    ANY = "ANY"
    RULE_ORDER = "RULE ORDER"
    COLLECT = "COLLECT"


class Aggregation(str, Enum):
    """Aggregation applied to COLLECT results."""

    SUM = "SUM"
    MIN = "MIN"
    MAX = "MAX"
    COUNT = "COUNT"


MULTI_RESULT_POLICIES = frozenset({HitPolicyKind.RULE_ORDER, HitPolicyKind.COLLECT})


class HitPolicy(BaseModel):
    """Hit policy of a table, with COLLECT options."""

    model_config = ConfigDict(frozen=True)

    kind: HitPolicyKind = Field(default=HitPolicyKind.UNIQUE)
    aggregation: Aggregation | None = Field(default=None)
    distinct: bool = Field(default=False, description="Drop repeated COLLECT outputs")

    @property
    def multiple(self) -> bool:
        """True when results are returned as a list."""
        return self.kind in MULTI_RESULT_POLICIES and self.aggregation is None

    def __str__(self) -> str:
        if self.aggregation is not None:
            return f"{self.kind.value} {self.aggregation.value}"
        return self.kind.value


class DecisionTable(BaseModel):
    """A named, immutable decision table."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Table name used for lookups")
    inputs: tuple[Column, ...] = Field(description="Ordered input columns")
    outputs: tuple[Column, ...] = Field(description="Ordered output columns")
    rules: tuple[Rule, ...] = Field(default=(), description="Rules in table order")
    hit_policy: HitPolicy = Field(default_factory=HitPolicy)
    no_match: Literal["empty", "error"] = Field(
        default="empty", description="Behaviour when no rule matched"
    )
    description: str | None = Field(default=None)

    @property
    def input_names(self) -> list[str]:
        return [c.name for c in self.inputs]

    @property
    def output_names(self) -> list[str]:
        return [c.name for c in self.outputs]


# =============================================================================
# Evaluation results
# =============================================================================


OutputRow = dict[str, Union[LiteralValue, None]]


class EvaluationResult(BaseModel):
    """Outcome of evaluating one input row against one table."""

    table: str = Field(description="Name of the evaluated table")
    hit_policy: str = Field(description="Hit policy that produced the result")
    outputs: list[OutputRow] = Field(
        default_factory=list, description="Output mappings in table order"
    )
    matched_rules: list[str] = Field(
        default_factory=list, description="Ids of the rules that matched"
    )
    multiple: bool = Field(default=False, description="Result is a list of mappings")

    @property
    def is_empty(self) -> bool:
        return not self.outputs

    @property
    def single_result(self) -> OutputRow | None:
        """First output mapping, or None when nothing matched."""
        return self.outputs[0] if self.outputs else None

    def single_entry(self) -> LiteralValue | None:
        """First value of the first output mapping."""
        result = self.single_result
        if not result:
            return None
        return next(iter(result.values()))

    def result_list(self, column: str | None = None) -> list[Any]:
        """Values of one output column across all mappings (default: the first column)."""
        if not self.outputs:
            return []
        key = column or next(iter(self.outputs[0]))
        return [row.get(key) for row in self.outputs]
