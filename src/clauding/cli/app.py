"""The ``clauding`` command line application."""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler
from typing_extensions import Annotated

from clauding import __version__
from clauding.cli.commands import feature, merge, timelog
from clauding.cli.helpers import console, err_console

app = typer.Typer(
    name="clauding",
    help="Feature worktrees, lifecycle status and merge orchestration",
    add_completion=False,
    no_args_is_help=True,
)
app.add_typer(feature.app, name="feature")
app.add_typer(merge.app, name="merge")
app.add_typer(timelog.app, name="timelog")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"clauding {__version__}")
        raise typer.Exit()


@app.callback()
def callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log git commands and merge phases")] = False,
    version: Annotated[
        bool, typer.Option("--version", callback=_version_callback, is_eager=True, help="Show the version")
    ] = False,
) -> None:
    """Manage feature worktrees and merge them back into main."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def main():
    app()


if __name__ == "__main__":
    main()
