"""Helpers shared by the CLI commands."""

import json
from pathlib import Path
from typing import Any, NoReturn

import click
import yaml

from scenecraft.expressions.evaluator import UNDEFINED
from scenecraft.specification import to_json_compatible


def fail(message: str) -> NoReturn:
    """Print an error in red to stderr and exit with status 1."""
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    raise SystemExit(1)


def load_data(path: Path | None) -> dict[str, Any]:
    """Load a data environment from a JSON or YAML file (empty when no file)."""
    if path is None:
        return {}

    try:
        with path.open() as fh:
            data = yaml.safe_load(fh)
    except yaml.YAMLError as e:
        fail(f"Could not parse data file {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        fail(f"Data file {path} must contain a mapping, got {type(data).__name__}")
    return data


def _json_default(value: Any) -> Any:
    if value is UNDEFINED:
        return None
    return str(value)


def echo_json(value: Any) -> None:
    """Print a spec tree or resolved value as indented JSON."""
    click.echo(json.dumps(to_json_compatible(value), indent=2, default=_json_default))
