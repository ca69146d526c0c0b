"""Shared helpers for CLI commands."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn, TypeVar

import typer

from relflow.core.config import RepositoryDescriptor
from relflow.core.errors import ErrorCode
from relflow.core.result import Err, Result
from relflow.output.console import ConsoleProtocol, Style
from relflow.release.contracts import ReleaseResult
from relflow.release.model import ReleaseNames
from relflow.release.rollback import RollbackReport

if TYPE_CHECKING:
    from relflow.cli.context import CLIContext


T = TypeVar("T")
E = TypeVar("E")


def exit_on_error[T, E](
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode = ErrorCode.WORKFLOW_ERROR,
) -> None:
    """Exit with ``error_code`` if result is Err, otherwise return.

    Expects error objects to have 'message' and optional 'hint' attributes.
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        ctx.console.error(message)
        if hint:
            ctx.console.print(f"hint: {hint}", Style.DIM)
        raise typer.Exit(code=int(error_code))


def exit_with_code(code: ErrorCode) -> NoReturn:
    raise typer.Exit(code=int(code))


def require_repository(ctx: CLIContext, name: str) -> RepositoryDescriptor:
    found = ctx.store.get_repository(name)
    if isinstance(found, Err):
        ctx.console.error(found.error.message)
        if found.error.hint:
            ctx.console.print(f"hint: {found.error.hint}", Style.DIM)
        exit_with_code(ErrorCode.USER_ERROR)
    repo = found.value
    if not repo.path.is_dir():
        ctx.console.error(f"repository path does not exist: {repo.path}")
        if repo.remote_url:
            ctx.console.print(f"hint: relflow repos clone {repo.name}", Style.DIM)
        else:
            ctx.console.print(f"hint: fix 'path' for {repo.name} in {ctx.store.path}", Style.DIM)
        exit_with_code(ErrorCode.USER_ERROR)
    return repo


def print_names(console: ConsoleProtocol, names: ReleaseNames) -> None:
    console.print(f"  rollback tag          {names.rollback_tag}")
    console.print(f"  release branch        {names.release_branch}")
    console.print(f"  version tag           {names.version_tag}")
    console.print(f"  final release branch  {names.final_branch}")


def print_result(console: ConsoleProtocol, result: ReleaseResult) -> None:
    rows = (
        ("rollback tag", result.rollback_tag),
        ("release branch", result.release_branch),
        ("version tag", result.version_tag),
        ("final release branch", result.final_release_branch),
    )
    created = [(label, value) for label, value in rows if value]
    if not created:
        console.print("  nothing was created", Style.DIM)
        return
    for label, value in created:
        console.print(f"  {label:<21} {value}")


def print_rollback(console: ConsoleProtocol, report: RollbackReport) -> None:
    if report.is_empty:
        console.print("rollback: nothing to undo", Style.DIM)
        return
    for outcome in report.outcomes:
        if outcome.ok:
            console.print(f"  deleted  {outcome.kind}: {outcome.name}", Style.DIM)
        else:
            console.print(f"  FAILED   {outcome.kind}: {outcome.name} ({outcome.message})", Style.WARNING)
    summary = f"rollback: {report.succeeded}/{report.attempted} deletions succeeded"
    if report.ok:
        console.success(summary)
    else:
        console.warning(summary)
