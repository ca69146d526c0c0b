"""Status command - where a repository stands between release steps."""

from __future__ import annotations

import typer

from relflow.cli.commands._helpers import exit_on_error, exit_with_code, require_repository
from relflow.cli.context import build_context
from relflow.core.errors import ErrorCode
from relflow.core.result import Err
from relflow.git.lock import LOCK_FILE_NAME
from relflow.git.repository import Repository
from relflow.output.console import Style


def status(
    repo: str = typer.Argument(..., help="Configured repository name."),
) -> None:
    """Show branch, merge state and conflicted paths of a repository."""
    ctx = build_context()
    descriptor = require_repository(ctx, repo)
    vcs = Repository(descriptor.path, remote=descriptor.remote)
    if not vcs.exists():
        ctx.console.error(f"not a git repository: {descriptor.path}")
        exit_with_code(ErrorCode.USER_ERROR)

    st = vcs.status()
    exit_on_error(st, ctx, ErrorCode.ENV_ERROR)
    if isinstance(st, Err):
        return
    current = st.value

    ctx.console.header(f"{descriptor.name} ({descriptor.branches.kind})")
    branch = current.branch or "(detached HEAD)"
    if current.upstream:
        branch += f" -> {current.upstream} (ahead {current.ahead}, behind {current.behind})"
    ctx.console.print(f"branch: {branch}")

    merging = vcs.is_merge_in_progress()
    ctx.console.print(f"merge in progress: {'yes' if merging else 'no'}")
    if current.has_conflicts:
        ctx.console.print("conflicted paths:", Style.BOLD)
        for path in current.conflicted:
            ctx.console.print(f"  - {path}", Style.WARNING)
    elif not current.is_clean:
        ctx.console.print(f"{len(current.entries)} uncommitted change(s)", Style.DIM)

    lock_path = vcs.git_dir() / LOCK_FILE_NAME
    if lock_path.exists():
        ctx.console.warning(f"release lock present: {lock_path}")
