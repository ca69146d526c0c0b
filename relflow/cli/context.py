from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from relflow.core.config import ConfigStore, default_config_path, load_store
from relflow.core.errors import ErrorCode
from relflow.core.result import Err
from relflow.output.console import ConsoleProtocol, RichConsole

# Set by the root callback on every invocation; None means the default lookup.
_config_override: Path | None = None


@dataclass(frozen=True, slots=True)
class CLIContext:
    store: ConfigStore
    console: ConsoleProtocol


def use_config(path: Path | None) -> None:
    """Select the configuration file for the current command (``--config``)."""
    global _config_override
    _config_override = path


def config_path() -> Path:
    return _config_override or default_config_path()


def build_context() -> CLIContext:
    """Load the configuration; a broken config ends the command before any git call."""
    loaded = load_store(config_path())
    if isinstance(loaded, Err):
        typer.echo(f"error: {loaded.error.message}", err=True)
        if loaded.error.hint:
            typer.echo(f"hint: {loaded.error.hint}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    return CLIContext(store=loaded.value, console=RichConsole())
