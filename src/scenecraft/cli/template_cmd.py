"""Template CLI commands — compile, render and validate AST documents."""

from pathlib import Path

import click

from scenecraft.cli.common import echo_json, fail, load_data
from scenecraft.compiler.visitor import compile_template
from scenecraft.errors import CompileError, ExpressionError
from scenecraft.expressions.sandbox import SandboxOptions
from scenecraft.template.loader import (
    TemplateLoadError,
    load_ast,
    load_template,
    read_document,
    validate_ast_document,
)
from scenecraft.template.nodes import block_from_dict

AST_FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


@click.command("compile")
@click.argument("ast_file", type=AST_FILE)
def compile_cmd(ast_file: Path):
    """Compile an AST document and print the spec tree.

    Dynamic values are shown as {"$": "<expression>"}.
    """
    try:
        result = compile_template(load_ast(ast_file))
    except (TemplateLoadError, CompileError) as e:
        fail(str(e))

    echo_json(result)


@click.command()
@click.argument("ast_file", type=AST_FILE)
@click.option(
    "--data",
    "data_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON or YAML file holding the data environment.",
)
@click.option(
    "--trace",
    is_flag=True,
    default=False,
    help="Print every evaluated expression and its value to stderr.",
)
def render(ast_file: Path, data_file: Path | None, trace: bool):
    """Build an AST document against data and print one scene per phase."""
    data = load_data(data_file)

    def on_expression(source, value):
        click.echo(click.style(f"  {source} -> {value!r}", fg="cyan"), err=True)

    try:
        template = load_template(ast_file)
        scenes = template.build(
            data,
            options=SandboxOptions.from_env(),
            on_expression=on_expression if trace else None,
        )
    except (TemplateLoadError, CompileError, ExpressionError) as e:
        fail(str(e))
    except ValueError as e:
        # bad SCENECRAFT_* configuration
        fail(str(e))

    echo_json(scenes)


@click.command()
@click.argument("ast_file", type=AST_FILE)
def validate(ast_file: Path):
    """Check an AST document against the schema, then compile it."""
    try:
        doc = read_document(ast_file)
    except TemplateLoadError as e:
        fail(str(e))

    issues = validate_ast_document(doc, file=ast_file)
    for issue in issues:
        click.echo(click.style(str(issue), fg="red"))

    if issues:
        click.echo(
            click.style(f"\n{len(issues)} schema error(s) found", fg="red", bold=True)
        )
        raise SystemExit(1)

    try:
        result = compile_template(block_from_dict(doc.get("structure", doc)))
    except CompileError as e:
        fail(f"Compilation failed: {e}")

    phases = ", ".join(phase.name for phase in result.phases)
    click.echo(f"Compiled {len(result.root.children)} top-level component(s), phases: {phases}")
    click.echo(click.style("\nTemplate is valid.", fg="green", bold=True))
