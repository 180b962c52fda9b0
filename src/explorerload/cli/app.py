"""The ``explorerload`` command: ``run`` drives a test, ``target`` serves the stand-in."""

from __future__ import annotations

import typer

from explorerload import __version__
from explorerload.cli.run import run_cmd
from explorerload.cli.target_cmd import target_cmd

app = typer.Typer(
    name="explorerload",
    help="Load test the Dora the Explorer service on localhost:1323.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _print_version(requested: bool) -> None:
    if not requested:
        return
    typer.echo(f"explorerload {__version__}")
    raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_print_version,
        is_eager=True,
        help="Print the explorerload version and exit.",
    ),
) -> None:
    """explorerload: k6-style load tests for the Dora the Explorer service."""


app.command("run", help="Run a scenario file with virtual users.")(run_cmd)
app.command("target", help="Serve a local stand-in for the Dora the Explorer service.")(
    target_cmd
)
