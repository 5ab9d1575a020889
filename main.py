"""CLI entry point for the decision table service."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config.logging import configure_logging
from config.settings import get_settings
from decision_engine.engine import DecisionEngine
from decision_engine.errors import DecisionError
from decision_engine.store import TableStore, read_definition_path
from models.schemas import DecisionTable


console = Console()


def _parse_assignment(assignment: str) -> tuple[str, Any]:
    """Parse ``name=value``; the value is read as JSON when possible, else as a string."""
    if "=" not in assignment:
        raise click.BadParameter(f"expected name=value, got {assignment!r}")
    name, raw = assignment.split("=", 1)
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        value = raw
    return name.strip(), value


def _load_engine(ctx: click.Context) -> DecisionEngine:
    settings = get_settings()
    tables_path = ctx.obj.get("tables_path") or settings.tables_path
    try:
        store = TableStore()
        store.load_path(Path(tables_path))
    except (DecisionError, FileNotFoundError) as e:
        console.print(f"[red]Failed to load tables from {tables_path}: {e}[/red]")
        sys.exit(1)
    return DecisionEngine(store, require_match=settings.require_match)


@click.group()
@click.version_option(version="1.0.0")
@click.option(
    "--tables",
    "tables_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Table definition file or directory (defaults to TABLES_PATH).",
)
@click.pass_context
def cli(ctx: click.Context, tables_path: Path | None) -> None:
    """Decision Table Service - evaluate DMN-style decision tables."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    ctx.ensure_object(dict)
    ctx.obj["tables_path"] = tables_path


@cli.command()
@click.pass_context
def tables(ctx: click.Context) -> None:
    """List the loaded decision tables."""
    engine = _load_engine(ctx)

    table = Table(title="Decision Tables")
    table.add_column("Name", style="cyan")
    table.add_column("Hit Policy")
    table.add_column("Inputs")
    table.add_column("Outputs")
    table.add_column("Rules", justify="right")

    for name in engine.store.names():
        decision = engine.store.get(name)
        table.add_row(
            name,
            str(decision.hit_policy),
            ", ".join(decision.input_names),
            ", ".join(decision.output_names),
            str(len(decision.rules)),
        )

    console.print(table)


def _rules_table(decision: DecisionTable) -> Table:
    table = Table(title=f"{decision.name} ({decision.hit_policy})")
    table.add_column("#", justify="right", style="dim")
    for column in decision.inputs:
        table.add_column(f"{column.name}\n[dim]{column.type.value}[/dim]")
    for column in decision.outputs:
        table.add_column(f"{column.name}\n[dim]{column.type.value}[/dim]", style="green")
    table.add_column("Annotation", style="dim")

    for rule in decision.rules:
        table.add_row(
            str(rule.index + 1),
            *[c.to_text() for c in rule.conditions],
            *[json.dumps(v) for v in rule.outputs],
            rule.description or "",
        )
    return table


@cli.command()
@click.argument("name")
@click.pass_context
def show(ctx: click.Context, name: str) -> None:
    """Show the rules of a decision table."""
    engine = _load_engine(ctx)
    try:
        decision = engine.store.get(name)
    except DecisionError as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)
    console.print(_rules_table(decision))


@cli.command()
@click.argument("name")
@click.option(
    "-i",
    "--input",
    "assignments",
    multiple=True,
    help="Input variable as name=value (repeatable).",
)
@click.option("--json", "json_input", default=None, help="Input row as a JSON object.")
@click.option(
    "--require-match/--allow-empty",
    default=None,
    help="Fail when no rule matches (defaults to table and REQUIRE_MATCH settings).",
)
@click.pass_context
def evaluate(
    ctx: click.Context,
    name: str,
    assignments: tuple[str, ...],
    json_input: str | None,
    require_match: bool | None,
) -> None:
    """Evaluate a decision table against an input row."""
    input_row: dict[str, Any] = {}
    if json_input:
        try:
            input_row.update(json.loads(json_input))
        except (json.JSONDecodeError, TypeError, ValueError) as e:
            raise click.BadParameter(f"invalid JSON input: {e}", param_hint="--json") from e
    for assignment in assignments:
        key, value = _parse_assignment(assignment)
        input_row[key] = value

    engine = _load_engine(ctx)
    console.print(Panel(json.dumps(input_row), title=f"Evaluate {name}"))

    try:
        result = engine.evaluate(name, input_row, require_match=require_match)
    except DecisionError as e:
        console.print(f"[red]{e.code}: {e.message}[/red]")
        sys.exit(2)

    if result.is_empty:
        console.print("[yellow]No rule matched.[/yellow]")
    console.print_json(result.model_dump_json(indent=2))


@cli.command()
@click.argument("path", type=click.Path(exists=True, path_type=Path))
def validate(path: Path) -> None:
    """Check that table definitions load without errors."""
    try:
        loaded = read_definition_path(path)
    except DecisionError as e:
        console.print(f"[red]✗ {e.code}: {e.message}[/red]")
        sys.exit(1)

    for decision in loaded:
        console.print(
            f"  [green]✓[/green] {decision.name} "
            f"({decision.hit_policy}, {len(decision.rules)} rules)"
        )
    console.print(f"\n[bold]{len(loaded)} table(s) valid[/bold]")


@cli.command()
@click.argument("name")
@click.pass_context
def export(ctx: click.Context, name: str) -> None:
    """Print the structural JSON definition of a loaded table."""
    engine = _load_engine(ctx)
    try:
        definition = engine.store.dump(name)
    except DecisionError as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)
    click.echo(json.dumps(definition, indent=2))


if __name__ == "__main__":
    cli()
