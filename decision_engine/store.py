"""In-memory store of immutable decision tables."""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from config.logging import get_logger
from decision_engine.dmn import parse_dmn
from decision_engine.errors import MalformedTableError, NotFoundError
from decision_engine.parser import parse_table, table_to_definition
from models.schemas import DecisionTable


DEFINITION_SUFFIXES = (".json", ".dmn")

logger = get_logger("decision_engine.store")


def read_definition_file(path: Path) -> list[DecisionTable]:
    """Parse every table defined in a .json or .dmn file."""
    suffix = path.suffix.lower()
    if suffix == ".dmn":
        return parse_dmn(path.read_bytes())
    if suffix != ".json":
        raise MalformedTableError(f"Unsupported table definition file: {path.name}")

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise MalformedTableError(f"{path.name}: invalid JSON ({e})") from e

    definitions = payload if isinstance(payload, list) else [payload]
    return [parse_table(d) for d in definitions]


def read_definition_path(path: Path) -> list[DecisionTable]:
    """Parse a definition file, or every definition file directly inside a directory."""
    path = path.expanduser()
    if path.is_dir():
        files = sorted(
            p for p in path.iterdir() if p.is_file() and p.suffix.lower() in DEFINITION_SUFFIXES
        )
        tables: list[DecisionTable] = []
        for file in files:
            tables.extend(read_definition_file(file))
        return tables
    if not path.is_file():
        raise FileNotFoundError(path)
    return read_definition_file(path)


def _index(tables: Iterable[DecisionTable]) -> dict[str, DecisionTable]:
    indexed: dict[str, DecisionTable] = {}
    for table in tables:
        if table.name in indexed:
            raise MalformedTableError(f"Table '{table.name}' is defined twice", table=table.name)
        indexed[table.name] = table
    return indexed


class TableStore:
    """
    Name -> DecisionTable mapping.

    The mapping itself is never mutated: every change builds a new dict and
    rebinds ``self._tables``, so a reader holding the previous snapshot keeps
    seeing a consistent set of tables.
    """

    def __init__(self, tables: Iterable[DecisionTable] = ()) -> None:
        self._tables: Mapping[str, DecisionTable] = _index(tables)
        self._lock = threading.Lock()

    def load(self, definition: Mapping[str, Any]) -> DecisionTable:
        """Parse a definition and register the table under its name."""
        table = parse_table(definition)
        self.register(table)
        return table

    def register(self, table: DecisionTable) -> None:
        """Publish an already parsed table, replacing any table of the same name."""
        self._publish([table])

    def load_file(self, path: Path) -> list[DecisionTable]:
        """Load every table in a .json or .dmn file."""
        return self._publish(read_definition_file(Path(path)))

    def load_path(self, path: Path) -> list[DecisionTable]:
        """Load a definition file or a directory of them."""
        return self._publish(read_definition_path(Path(path)))

    def reload(self, path: Path) -> list[DecisionTable]:
        """Replace the whole snapshot with the tables found under path.

        Nothing is swapped when any definition fails to load.
        """
        tables = _index(read_definition_path(Path(path)))
        with self._lock:
            self._tables = tables
        logger.info("Decision tables reloaded", path=str(path), tables=sorted(tables))
        return list(tables.values())

    def _publish(self, tables: list[DecisionTable]) -> list[DecisionTable]:
        indexed = _index(tables)
        # writers merge under the lock; readers only ever see a complete dict
        with self._lock:
            self._tables = {**self._tables, **indexed}
        for table in tables:
            logger.info(
                "Decision table loaded",
                table=table.name,
                hit_policy=str(table.hit_policy),
                rules=len(table.rules),
            )
        return tables

    def get(self, name: str) -> DecisionTable:
        """Look up a table by name."""
        try:
            return self._tables[name]
        except KeyError:
            raise NotFoundError(
                f"Decision table '{name}' not found",
                table=name,
                details={"available": sorted(self._tables)},
            ) from None

    def dump(self, name: str) -> dict[str, Any]:
        """Structural description of a loaded table."""
        return table_to_definition(self.get(name))

    def names(self) -> list[str]:
        return sorted(self._tables)

    def snapshot(self) -> Mapping[str, DecisionTable]:
        """Current name -> table mapping; never mutated after publication."""
        return self._tables

    def __contains__(self, name: object) -> bool:
        return name in self._tables

    def __len__(self) -> int:
        return len(self._tables)
