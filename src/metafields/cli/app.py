"""
Form configuration commands for the metafields CLI.

- check: validate a form configuration and list its fields
- visibility: compute initial visibility for stored values
- sanitize: sanitize a submission into a clean value tree
- schema: print the JSON Schema of a form's value tree
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from metafields._version import get_version
from metafields.core.errors import ConfigError, FormConfigError
from metafields.core.form_config import FormConfig, load_form_config
from metafields.runtime.context import RequestContext
from metafields.runtime.json_schema import form_json_schema
from metafields.runtime.logging import setup_logging
from metafields.runtime.value_tree import sanitize_submission
from metafields.runtime.visibility import compute_initial_visibility

app = typer.Typer(
    help="Validate and exercise declarative field schemas",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"metafields {get_version()}")
        raise typer.Exit()


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
    log_file: Annotated[Path | None, typer.Option("--log-file", help="Also write JSONL logs to this file")] = None,
    version: Annotated[
        bool,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = False,
) -> None:
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING, log_file=log_file)


def _fail(message: str) -> typer.Exit:
    console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(code=1)


def _load_form(config: Path) -> FormConfig:
    try:
        return load_form_config(config)
    except (ConfigError, FormConfigError) as e:
        raise _fail(str(e)) from e


def _read_json(path: Path | None) -> Any:
    if path is None:
        return {}
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise _fail(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise _fail(f"Invalid JSON in {path}: {e}") from e


@app.command(name="check")
def check(
    config: Annotated[Path, typer.Argument(help="Form configuration (.toml, .yaml)")],
) -> None:
    """Validate a form configuration and list its fields."""
    form = _load_form(config)

    table = Table(title=f"{form.title} ({form.id})")
    table.add_column("Key")
    table.add_column("Kind")
    table.add_column("Show when")
    table.add_column("Children", justify="right")

    for node in form.fields:
        table.add_row(
            escape(node.key),
            node.kind.value,
            escape(", ".join(f"{c.field} {c.operator} {c.value!r}" for c in node.visibility)),
            str(len(node.children)) if node.children else "",
        )

    console.print(table)
    console.print(f"\n[green]OK[/green] {len(form.fields)} field(s) for {', '.join(form.content_types)}")


@app.command(name="visibility")
def visibility(
    config: Annotated[Path, typer.Argument(help="Form configuration (.toml, .yaml)")],
    values: Annotated[Path | None, typer.Argument(help="JSON file of stored values")] = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """Compute the initial visibility of every field path."""
    form = _load_form(config)
    stored = _read_json(values)
    if not isinstance(stored, dict):
        raise _fail("Stored values must be a JSON object")

    flags = compute_initial_visibility(form.fields, stored)

    if output_json:
        console.print_json(json.dumps(flags))
        return

    table = Table(title="Initial visibility")
    table.add_column("Field path")
    table.add_column("Visible")
    for path, visible in flags.items():
        table.add_row(escape(path), "[green]yes[/green]" if visible else "[red]no[/red]")
    console.print(table)


@app.command(name="sanitize")
def sanitize(
    config: Annotated[Path, typer.Argument(help="Form configuration (.toml, .yaml)")],
    submission: Annotated[Path, typer.Argument(help="JSON file of submitted values")],
    capability: Annotated[
        list[str] | None,
        typer.Option("--capability", "-c", help="Capability held by the user (repeatable; default: all)"),
    ] = None,
) -> None:
    """Sanitize a submission into a clean value tree."""
    form = _load_form(config)
    raw = _read_json(submission)

    context = RequestContext.with_capabilities(capability) if capability else RequestContext()
    clean = sanitize_submission(form.fields, raw, context=context)
    console.print_json(json.dumps(clean, default=str))


@app.command(name="schema")
def schema(
    config: Annotated[Path, typer.Argument(help="Form configuration (.toml, .yaml)")],
    include_all: Annotated[
        bool, typer.Option("--all", help="Include fields not exposed over REST")
    ] = False,
) -> None:
    """Print the JSON Schema of a form's value tree."""
    form = _load_form(config)
    console.print_json(json.dumps(form_json_schema(form.fields, rest_only=not include_all)))


def main() -> None:
    app()
