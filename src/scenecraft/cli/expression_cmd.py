"""Expression CLI commands — evaluate expressions and list global functions."""

import dataclasses
from pathlib import Path

import click

from scenecraft.cli.common import echo_json, fail, load_data
from scenecraft.errors import ExpressionError
from scenecraft.expressions.environment import EntryKind, describe_environment
from scenecraft.expressions.evaluator import UNDEFINED
from scenecraft.expressions.sandbox import SandboxOptions, evaluate


@click.command("eval")
@click.argument("expression")
@click.option(
    "--data",
    "data_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON or YAML file holding the data environment.",
)
@click.option(
    "--strict-members",
    is_flag=True,
    default=False,
    help="Raise on member access of null/undefined instead of yielding undefined.",
)
def eval_cmd(expression: str, data_file: Path | None, strict_members: bool):
    """Evaluate one sandboxed EXPRESSION and print the result as JSON."""
    data = load_data(data_file)

    try:
        options = SandboxOptions.from_env()
    except ValueError as e:
        fail(str(e))
    if strict_members:
        options = dataclasses.replace(options, null_safe_member=False)

    try:
        value = evaluate(expression, data, options)
    except ExpressionError as e:
        fail(f"[{e.kind.value}] {e}")

    if value is UNDEFINED:
        click.echo("undefined")
    else:
        echo_json(value)


@click.command()
@click.option(
    "--kind",
    type=click.Choice([kind.value for kind in EntryKind]),
    default=None,
    help="Only list functions or only constants.",
)
def functions(kind: str | None):
    """List the global functions and constants available to expressions."""
    entries = [
        entry for entry in describe_environment()
        if kind is None or entry.kind.value == kind
    ]
    width = max((len(entry.name) for entry in entries), default=0)
    for entry in entries:
        click.echo(f"  {entry.name:<{width}}  {entry.kind.value:<8}  {entry.summary}")
    click.echo(f"\n{len(entries)} entries")
