from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from relpkg.core.config import CONFIG_FILENAME, Config, load_config
from relpkg.core.errors import ErrorCode
from relpkg.core.result import Err
from relpkg.output.console import ConsoleProtocol, RichConsole

# Set by the root callback so commands can be invoked (and tested) directly.
ENV_CONFIG = "RELPKG_CONFIG"
ENV_VERBOSE = "RELPKG_VERBOSE"


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    config_path: Path | None
    console: ConsoleProtocol
    verbose: bool


def _config_path() -> Path | None:
    env = os.environ.get(ENV_CONFIG)
    if env:
        return Path(env).expanduser()
    default = Path.cwd() / CONFIG_FILENAME
    return default if default.is_file() else None


def build_context() -> CLIContext:
    verbose = os.environ.get(ENV_VERBOSE, "") == "1"
    console = RichConsole(verbose=verbose)

    path = _config_path()
    config = Config()
    if path is not None:
        result = load_config(path)
        if isinstance(result, Err):
            typer.echo(f"error: {result.error.message}", err=True)
            raise typer.Exit(code=int(ErrorCode.ENV_ERROR))
        config = result.value

    return CLIContext(config=config, config_path=path, console=console, verbose=verbose)
