"""Form definition CLI commands: check and validate."""

import asyncio
import importlib
import json
from pathlib import Path

import click

from formforge.config import (
    FormDefinition,
    build_form,
    load_data,
    load_definition,
    validate_definition_file,
)
from formforge.errors import ConfigurationError
from formforge.types import ValidationOutcome


def _load_plugins(plugins: tuple[str, ...]) -> None:
    """Import modules that register custom validators."""
    for name in plugins:
        try:
            importlib.import_module(name)
        except ImportError as e:
            click.echo(click.style(f"Cannot import plugin '{name}': {e}", fg="red"), err=True)
            raise SystemExit(1)


_plugin_option = click.option(
    "--plugin",
    "-p",
    "plugins",
    multiple=True,
    help="Module to import before loading definitions (registers custom validators).",
)


@click.command()
@_plugin_option
@click.argument(
    "files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
def check(plugins: tuple[str, ...], files: tuple[Path, ...]):
    """Check form definition files against the schema and rule syntax."""
    _load_plugins(plugins)

    issues = []
    for path in files:
        file_issues = validate_definition_file(path)
        issues.extend(file_issues)
        if not file_issues:
            click.echo(f"  ✓ {path}")

    for issue in issues:
        colour = "red" if issue.severity == "error" else "yellow"
        click.echo(click.style(str(issue), fg=colour))

    if issues:
        click.echo(click.style(f"\n{len(issues)} issue(s) found", fg="red", bold=True))
        raise SystemExit(1)

    click.echo(click.style("\nAll form definitions are valid.", fg="green", bold=True))


async def _run_validation(definition: FormDefinition, data: dict) -> ValidationOutcome:
    form = build_form(definition, data)
    return await form.validate().wait()


@click.command()
@_plugin_option
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the outcome as JSON.")
@click.argument("form_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("data_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def validate(plugins: tuple[str, ...], as_json: bool, form_file: Path, data_file: Path):
    """Validate a data document (YAML or JSON) against a form definition."""
    _load_plugins(plugins)

    try:
        definition = load_definition(form_file)
        data = load_data(data_file)
    except ConfigurationError as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        raise SystemExit(1)

    outcome = asyncio.run(_run_validation(definition, data))

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False))
    elif outcome.valid:
        click.echo(click.style("All fields are valid.", fg="green", bold=True))
    else:
        for path, errors in outcome.invalid_fields.items():
            for error in errors:
                click.echo(click.style(f"  ✗ {path}: {error.message}", fg="red"))
        click.echo(
            click.style(
                f"\n{len(outcome.invalid_fields)} invalid field(s)", fg="red", bold=True
            )
        )

    if not outcome.valid:
        raise SystemExit(1)
