"""Error kinds raised while loading and evaluating decision tables."""

from __future__ import annotations

from typing import Any


class DecisionError(Exception):
    """Base exception for decision table errors."""

    code = "DECISION_ERROR"

    def __init__(
        self,
        message: str,
        table: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.table = table
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serializable form used by request handlers."""
        details = dict(self.details)
        if self.table is not None:
            details.setdefault("table", self.table)
        return {"error": self.code, "message": self.message, "details": details}


class MalformedTableError(DecisionError):
    """Table definition violates a structural invariant."""

    code = "MALFORMED_TABLE"


class NotFoundError(DecisionError):
    """No table is registered under the requested name."""

    code = "NOT_FOUND"


class TypeMismatchError(DecisionError):
    """Input value is missing or disagrees with its column type."""

    code = "TYPE_MISMATCH"


class OverlappingRulesError(DecisionError):
    """More than one rule matched where the hit policy allows one."""

    code = "OVERLAPPING_RULES"


class EmptyResultError(DecisionError):
    """No rule matched and the caller requires a match."""

    code = "EMPTY_RESULT"
