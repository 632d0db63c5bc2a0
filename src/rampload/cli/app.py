"""Main Typer application, the entry point for the ``rampload`` CLI."""

from __future__ import annotations

import typer

from rampload import __version__
from rampload.cli.init_cmd import init_cmd
from rampload.cli.run import run_cmd

app = typer.Typer(
    name="rampload",
    help="Stage-based HTTP load generator.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run a load test from a configuration file.")(run_cmd)
app.command("init", help="Write a starter configuration file.")(init_cmd)


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"rampload {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Ramp virtual users through stages and check the results."""
