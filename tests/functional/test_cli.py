"""Functional tests for the command line interface."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from config.settings import BUNDLED_TABLES_PATH
from conftest import make_dish_definition, make_rule, make_table_definition
from main import cli


class TestCliCommands:
    """Test the CLI against the bundled tables."""

    def test_tables_lists_bundled_tables(self) -> None:
        """Test: 'tables' shows every loaded table."""
        result = CliRunner().invoke(cli, ["--tables", str(BUNDLED_TABLES_PATH), "tables"])
        assert result.exit_code == 0
        assert "dishDecision" in result.output
        assert "beverages" in result.output

    def test_show_rules(self) -> None:
        """Test: 'show' renders rule cells."""
        result = CliRunner().invoke(
            cli, ["--tables", str(BUNDLED_TABLES_PATH), "show", "dishDecision"]
        )
        assert result.exit_code == 0
        assert "dishDecision" in result.output

    def test_show_unknown_table(self) -> None:
        """Test: 'show' exits non-zero for unknown tables."""
        result = CliRunner().invoke(cli, ["--tables", str(BUNDLED_TABLES_PATH), "show", "nope"])
        assert result.exit_code == 1

    def test_evaluate_with_assignments(self) -> None:
        """Test: name=value inputs are read as JSON literals."""
        result = CliRunner().invoke(
            cli,
            [
                "--tables",
                str(BUNDLED_TABLES_PATH),
                "evaluate",
                "dishDecision",
                "-i",
                "season=Spring",
                "-i",
                "guestCount=4",
            ],
        )
        assert result.exit_code == 0
        assert "Dry Aged Gourmet Steak" in result.output

    def test_evaluate_with_json(self) -> None:
        """Test: --json supplies the whole input row."""
        result = CliRunner().invoke(
            cli,
            [
                "--tables",
                str(BUNDLED_TABLES_PATH),
                "evaluate",
                "beverages",
                "--json",
                '{"desiredDish": "Roastbeef", "guestsWithChildren": true}',
            ],
        )
        assert result.exit_code == 0
        assert "Bordeaux" in result.output
        assert "Apple Juice" in result.output

    def test_evaluate_type_mismatch(self) -> None:
        """Test: Evaluation errors exit with status 2."""
        result = CliRunner().invoke(
            cli,
            [
                "--tables",
                str(BUNDLED_TABLES_PATH),
                "evaluate",
                "dishDecision",
                "-i",
                "season=Spring",
                "-i",
                'guestCount="4"',
            ],
        )
        assert result.exit_code == 2
        assert "TYPE_MISMATCH" in result.output

    def test_evaluate_require_match(self, tmp_path: Path) -> None:
        """Test: --require-match fails when nothing matches."""
        path = tmp_path / "dish.json"
        path.write_text(json.dumps(make_dish_definition()), encoding="utf-8")
        result = CliRunner().invoke(
            cli,
            [
                "--tables",
                str(path),
                "evaluate",
                "dishDecision",
                "--json",
                '{"season": "Winter", "guestCount": 4}',
                "--require-match",
            ],
        )
        assert result.exit_code == 2
        assert "EMPTY_RESULT" in result.output


class TestCliFiles:
    """Test validate and export."""

    def test_validate_ok(self) -> None:
        """Test: The bundled resources validate."""
        result = CliRunner().invoke(cli, ["validate", str(BUNDLED_TABLES_PATH)])
        assert result.exit_code == 0
        assert "2 table(s) valid" in result.output

    def test_validate_broken(self, tmp_path: Path) -> None:
        """Test: A malformed table fails validation."""
        path = tmp_path / "broken.json"
        path.write_text(
            json.dumps(make_table_definition(rules=[make_rule(["-"], ["A"])])), encoding="utf-8"
        )
        result = CliRunner().invoke(cli, ["validate", str(path)])
        assert result.exit_code == 1
        assert "MALFORMED_TABLE" in result.output

    def test_export_round_trip(self, tmp_path: Path) -> None:
        """Test: Exported JSON validates and describes the same rules."""
        path = tmp_path / "dish.json"
        path.write_text(json.dumps(make_dish_definition()), encoding="utf-8")
        result = CliRunner().invoke(cli, ["--tables", str(path), "export", "dishDecision"])
        assert result.exit_code == 0
        exported = json.loads(result.output[result.output.index("{"):])
        assert exported["name"] == "dishDecision"
        assert [r["id"] for r in exported["rules"]] == ["spring", "fallLarge", "fallSmall", "summer"]
        assert exported["rules"][0]["when"] == ['"Spring"', "<= 10"]
