"""Functional tests for the decision table store."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import pytest

from conftest import make_dish_definition, make_rule, make_table_definition
from decision_engine.errors import MalformedTableError, NotFoundError
from decision_engine.store import TableStore, read_definition_path


class TestStoreLoad:
    """Test loading and lookup."""

    def test_load_registers_table(self, dish_definition: dict[str, Any]) -> None:
        """Test: load() parses, registers and returns the table."""
        store = TableStore()
        table = store.load(dish_definition)
        assert store.get("dishDecision") is table
        assert "dishDecision" in store
        assert len(store) == 1

    def test_get_unknown_table(self, store: TableStore) -> None:
        """Test: Unknown names raise NotFoundError listing available tables."""
        with pytest.raises(NotFoundError) as exc_info:
            store.get("missing")
        assert exc_info.value.table == "missing"
        assert exc_info.value.details["available"] == ["dishDecision"]

    def test_malformed_table_is_not_registered(self) -> None:
        """Test: A table that fails to load never appears in the store."""
        store = TableStore()
        broken = make_table_definition(name="broken", rules=[make_rule(["-"], ["A"])])
        with pytest.raises(MalformedTableError):
            store.load(broken)
        assert "broken" not in store
        assert store.names() == []

    def test_load_replaces_same_name(self, store: TableStore) -> None:
        """Test: Loading a table with an existing name replaces it."""
        replacement = make_table_definition(
            name="dishDecision", rules=[make_rule(["-", "-"], ["Pizza"])]
        )
        store.load(replacement)
        assert len(store.get("dishDecision").rules) == 1

    def test_dump_matches_definition(self, store: TableStore) -> None:
        """Test: dump() yields a definition that loads back to an equal table."""
        dumped = store.dump("dishDecision")
        assert dumped["name"] == "dishDecision"
        assert TableStore().load(dumped) == store.get("dishDecision")

    def test_concurrent_loads_keep_every_table(self) -> None:
        """Test: Tables loaded from several threads are all registered."""
        store = TableStore()
        names = [f"dish{i}" for i in range(32)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda n: store.load(make_dish_definition(n)), names))
        assert store.names() == sorted(names)


class TestStoreFiles:
    """Test loading from files and directories."""

    def test_load_json_file(self, tmp_path: Path) -> None:
        """Test: A JSON file with one definition loads."""
        path = tmp_path / "dish.json"
        path.write_text(json.dumps(make_dish_definition()), encoding="utf-8")
        store = TableStore()
        tables = store.load_file(path)
        assert [t.name for t in tables] == ["dishDecision"]

    def test_load_json_list(self, tmp_path: Path) -> None:
        """Test: A JSON file may hold a list of definitions."""
        path = tmp_path / "tables.json"
        path.write_text(
            json.dumps([make_dish_definition("a"), make_dish_definition("b")]),
            encoding="utf-8",
        )
        store = TableStore()
        store.load_file(path)
        assert store.names() == ["a", "b"]

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Test: Broken JSON is a malformed table."""
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(MalformedTableError, match="invalid JSON"):
            TableStore().load_file(path)

    def test_unsupported_suffix(self, tmp_path: Path) -> None:
        """Test: Only .json and .dmn files are definitions."""
        path = tmp_path / "dish.yaml"
        path.write_text("name: dish", encoding="utf-8")
        with pytest.raises(MalformedTableError, match="Unsupported"):
            TableStore().load_file(path)

    def test_missing_path(self, tmp_path: Path) -> None:
        """Test: A missing path raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            read_definition_path(tmp_path / "nope.json")

    def test_directory_skips_other_files(self, tmp_path: Path) -> None:
        """Test: Directory loading only reads definition files."""
        (tmp_path / "dish.json").write_text(json.dumps(make_dish_definition()), encoding="utf-8")
        (tmp_path / "README.md").write_text("# tables", encoding="utf-8")
        store = TableStore()
        store.load_path(tmp_path)
        assert store.names() == ["dishDecision"]

    def test_duplicate_names_across_files(self, tmp_path: Path) -> None:
        """Test: The same table name in two files is malformed."""
        for filename in ("a.json", "b.json"):
            (tmp_path / filename).write_text(
                json.dumps(make_dish_definition()), encoding="utf-8"
            )
        with pytest.raises(MalformedTableError, match="defined twice"):
            TableStore().load_path(tmp_path)


class TestStoreReload:
    """Test snapshot swapping."""

    def test_reload_swaps_whole_snapshot(self, store: TableStore, tmp_path: Path) -> None:
        """Test: reload() replaces every table at once."""
        (tmp_path / "other.json").write_text(
            json.dumps(make_dish_definition("otherDecision")), encoding="utf-8"
        )
        store.reload(tmp_path)
        assert store.names() == ["otherDecision"]

    def test_old_snapshot_stays_consistent(self, store: TableStore, tmp_path: Path) -> None:
        """Test: A snapshot taken before reload is unaffected by it."""
        before = store.snapshot()
        (tmp_path / "other.json").write_text(
            json.dumps(make_dish_definition("otherDecision")), encoding="utf-8"
        )
        store.reload(tmp_path)
        assert list(before) == ["dishDecision"]
        assert store.snapshot() is not before

    def test_failed_reload_keeps_previous_tables(
        self, store: TableStore, tmp_path: Path
    ) -> None:
        """Test: A broken definition leaves the current snapshot in place."""
        (tmp_path / "good.json").write_text(
            json.dumps(make_dish_definition("good")), encoding="utf-8"
        )
        (tmp_path / "bad.json").write_text(
            json.dumps(make_table_definition(name="bad", rules=[make_rule([], [])])),
            encoding="utf-8",
        )
        with pytest.raises(MalformedTableError):
            store.reload(tmp_path)
        assert store.names() == ["dishDecision"]
