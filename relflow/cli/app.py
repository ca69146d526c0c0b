from __future__ import annotations

from pathlib import Path

import typer

from relflow import __version__
from relflow.cli.commands.release_cmd import names, release, rollback
from relflow.cli.commands.repos_cmd import init, repos_app
from relflow.cli.commands.status_cmd import status
from relflow.cli.context import use_config


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command()(release)
app.command()(rollback)
app.command()(status)
app.command()(names)
app.command()(init)

# Sub-apps
app.add_typer(repos_app, name="repos", help="Manage configured repositories.")


@app.callback(invoke_without_command=True)
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    config: Path | None = typer.Option(
        None,
        "--config",
        help="Configuration file (default: ./relflow.yml, or $RELFLOW_CONFIG).",
    ),
) -> None:
    """Git release workflow: tags, release branches, merges and rollback."""
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    use_config(config.expanduser().resolve() if config is not None else None)


def main() -> None:
    app()
