from __future__ import annotations

import os
from pathlib import Path

import typer

from relpkg import __version__
from relpkg.cli.commands.releasify import inspect, releasify
from relpkg.cli.context import ENV_CONFIG, ENV_VERBOSE
from relpkg.core.errors import ErrorCode

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command()(releasify)
app.command()(inspect)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print diagnostic messages."),
    config: Path | None = typer.Option(
        None, "--config", help="Config file (default: ./relpkg.toml if present)"
    ),
) -> None:
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if verbose:
        os.environ[ENV_VERBOSE] = "1"

    if config is not None:
        path = config.expanduser()
        if not path.is_file():
            typer.echo(f"error: --config '{path}' does not exist", err=True)
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
        os.environ[ENV_CONFIG] = str(path)


def main() -> None:
    app()
