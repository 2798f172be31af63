"""SceneCraft CLI entry point."""

import logging

import click

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="SCENECRAFT_LOG_LEVEL",
    show_default=True,
    help="Logging verbosity (also read from SCENECRAFT_LOG_LEVEL).",
)
def cli(log_level: str):
    """SceneCraft — compile scene templates and evaluate data bindings."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(levelname)s %(name)s: %(message)s",
    )


# Register subcommands
from scenecraft.cli.expression_cmd import eval_cmd, functions  # noqa: E402
from scenecraft.cli.template_cmd import compile_cmd, render, validate  # noqa: E402

cli.add_command(compile_cmd)
cli.add_command(render)
cli.add_command(validate)
cli.add_command(eval_cmd)
cli.add_command(functions)
