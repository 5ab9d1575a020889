"""Cloud function entry point exposing table evaluation behind an API gateway.

The gateway proxies ``POST /decisions/{table}`` with the input row as the JSON
body. A single-result table answers with the first output value as JSON (for
the dish table: ``"Stew"``); multi-result tables answer with the list of
output mappings.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any

from config.logging import configure_logging, get_logger
from config.settings import get_settings
from decision_engine.engine import DecisionEngine
from decision_engine.errors import (
    DecisionError,
    EmptyResultError,
    NotFoundError,
    OverlappingRulesError,
    TypeMismatchError,
)


STATUS_CODES: dict[type[DecisionError], int] = {
    NotFoundError: 404,
    TypeMismatchError: 400,
    OverlappingRulesError: 409,
    EmptyResultError: 422,
}

logger = get_logger("function.handler")


class BadRequest(Exception):
    """Request could not be turned into an input row."""


@lru_cache
def get_engine() -> DecisionEngine:
    """Build the engine once per function instance (cold start)."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    return DecisionEngine.from_settings(settings)


def _response(status_code: int, payload: Any) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def _table_name(event: dict[str, Any]) -> str:
    for key in ("pathParameters", "queryStringParameters"):
        params = event.get(key) or {}
        if params.get("table"):
            return str(params["table"])
    return get_settings().default_table


def _input_row(event: dict[str, Any]) -> dict[str, Any]:
    body = event.get("body")
    if body is None or body == "":
        return {}
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise BadRequest(f"Request body is not valid JSON: {e}") from e
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object of input variables")
    return body


def handle(
    event: dict[str, Any],
    context: Any = None,
    engine: DecisionEngine | None = None,
) -> dict[str, Any]:
    """Evaluate the requested table against the JSON body of the event."""
    engine = engine or get_engine()
    table = _table_name(event)

    try:
        input_row = _input_row(event)
    except BadRequest as e:
        logger.warning("Rejected request", table=table, error=str(e))
        return _response(400, {"error": "BAD_REQUEST", "message": str(e), "details": {}})

    logger.info("Evaluating decision", table=table, variables=sorted(input_row))
    try:
        result = engine.evaluate(table, input_row)
    except DecisionError as e:
        status = STATUS_CODES.get(type(e), 500)
        logger.warning("Decision failed", table=table, error=e.code, message=e.message)
        return _response(status, e.to_dict())

    if result.multiple:
        return _response(200, result.outputs)
    return _response(200, result.single_entry())
