from __future__ import annotations

from pathlib import Path

import typer

from relflow.cli.commands._helpers import exit_on_error, exit_with_code
from relflow.cli.context import build_context
from relflow.core.config import (
    BranchPair,
    ConfigurationError,
    RepositoryDescriptor,
    parse_kind,
    validate_descriptor,
)
from relflow.core.errors import ErrorCode
from relflow.core.result import Err
from relflow.git.repository import clone
from relflow.output.console import Style


repos_app = typer.Typer(add_completion=False, no_args_is_help=True)


@repos_app.command("list")
def list_repos() -> None:
    """List configured repositories."""
    ctx = build_context()
    repos = ctx.store.list_repositories()
    if not repos:
        ctx.console.info(f"no repositories configured in {ctx.store.path}")
        ctx.console.print("hint: relflow init, or relflow repos add NAME PATH", Style.DIM)
        return

    for repo in repos:
        b = repo.branches
        ctx.console.print(f"{repo.name}  [{b.kind}]  {b.develop} -> {b.production}", Style.BOLD)
        ctx.console.print(f"  {repo.path}", Style.DIM)
        if repo.last_used is not None:
            ctx.console.print(f"  last used {repo.last_used:%Y-%m-%d %H:%M}", Style.DIM)


@repos_app.command("add")
def add(
    name: str = typer.Argument(..., help="Repository name used on the command line."),
    path: Path = typer.Argument(..., help="Path to the git working tree."),
    develop: str | None = typer.Option(None, "--develop", help="Branch releases are cut from."),
    production: str | None = typer.Option(None, "--production", help="Branch merged into the release."),
    kind: str = typer.Option("standard", "--kind", help="Workflow kind: standard or legacy."),
    remote: str = typer.Option("origin", "--remote", help="Remote to push to."),
    url: str | None = typer.Option(None, "--url", help="Remote URL, used by 'relflow repos clone'."),
) -> None:
    """Add or replace a repository in the configuration."""
    ctx = build_context()
    parsed_kind = parse_kind(kind)
    if parsed_kind is None:
        exit_on_error(
            Err(ConfigurationError(f"unknown workflow kind: {kind}", hint="use standard or legacy")),
            ctx,
            ErrorCode.USER_ERROR,
        )
        return

    defaults = ctx.store.default_branches
    descriptor = RepositoryDescriptor(
        name=name.strip(),
        path=path.expanduser().resolve(),
        branches=BranchPair(
            develop=develop or defaults.develop,
            production=production or defaults.production,
            kind=parsed_kind,
        ),
        remote=remote,
        remote_url=url,
    )
    exit_on_error(validate_descriptor(descriptor), ctx, ErrorCode.USER_ERROR)

    ctx.store.add_repository(descriptor)
    exit_on_error(ctx.store.save(), ctx, ErrorCode.ENV_ERROR)
    ctx.console.success(f"saved {descriptor.name} to {ctx.store.path}")


@repos_app.command("remove")
def remove(
    name: str = typer.Argument(..., help="Repository name."),
) -> None:
    """Remove a repository from the configuration."""
    ctx = build_context()
    if not ctx.store.remove_repository(name):
        ctx.console.error(f"unknown repository: {name}")
        exit_with_code(ErrorCode.USER_ERROR)
    exit_on_error(ctx.store.save(), ctx, ErrorCode.ENV_ERROR)
    ctx.console.success(f"removed {name}")


@repos_app.command("clone")
def clone_repo(
    name: str = typer.Argument(..., help="Repository name."),
) -> None:
    """Clone a configured repository from its url into its path."""
    ctx = build_context()
    found = ctx.store.get_repository(name)
    exit_on_error(found, ctx, ErrorCode.USER_ERROR)
    if isinstance(found, Err):
        return
    repo = found.value

    if repo.path.exists():
        ctx.console.info(f"{repo.path} already exists, nothing to clone")
        return
    if repo.remote_url is None:
        ctx.console.error(f"{repo.name} has no url configured")
        ctx.console.print(f"hint: set 'url' for {repo.name} in {ctx.store.path}", Style.DIM)
        exit_with_code(ErrorCode.USER_ERROR)

    cloned = clone(repo.remote_url, repo.path, remote=repo.remote, console=ctx.console)
    exit_on_error(cloned, ctx, ErrorCode.ENV_ERROR)
    ctx.console.success(f"cloned {repo.name} into {repo.path}")

def init(
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration."),
) -> None:
    """Write a sample configuration with one standard and one legacy repository."""
    ctx = build_context()
    if ctx.store.path.exists() and not force:
        ctx.console.error(f"{ctx.store.path} already exists")
        ctx.console.print("hint: pass --force to overwrite it", Style.DIM)
        exit_with_code(ErrorCode.USER_ERROR)

    ctx.store.init_sample()
    exit_on_error(ctx.store.save(), ctx, ErrorCode.ENV_ERROR)
    ctx.console.success(f"wrote {ctx.store.path}")
