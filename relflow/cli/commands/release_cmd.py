from __future__ import annotations

import typer

from relflow.cli.commands._helpers import (
    exit_on_error,
    exit_with_code,
    print_names,
    print_result,
    print_rollback,
    require_repository,
)
from relflow.cli.context import CLIContext, build_context
from relflow.cli.prompt import ask_conflict_decision, ask_version, confirm
from relflow.core.config import RepositoryDescriptor
from relflow.core.errors import ErrorCode
from relflow.core.result import Err
from relflow.git.lock import LOCK_FILE_NAME, ReleaseLock
from relflow.git.repository import Repository
from relflow.output.console import Style
from relflow.release.contracts import ReleaseRequest
from relflow.release.errors import LockHeldError
from relflow.release.model import ReleaseNames, WorkflowArtifacts
from relflow.release.naming import compute_names, validate_names, validate_version
from relflow.release.rollback import RollbackManager, discover_artifacts
from relflow.release.workflow import build_workflow, drive_release


def release(
    repo: str = typer.Argument(..., help="Configured repository name."),
    version: str | None = typer.Option(
        None, "--version", "-v", help="Version to release (prompted when omitted)."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print git commands without running them."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Run the release workflow for a configured repository."""
    ctx = build_context()
    descriptor = require_repository(ctx, repo)
    raw_version = version if version is not None else ask_version(ctx.store.default_tag)
    names = _resolve_names(ctx, descriptor, raw_version)

    ctx.console.header(f"{descriptor.name}: {descriptor.branches.develop} -> {descriptor.branches.production}")
    print_names(ctx.console, names)
    if not yes and not dry_run and not confirm("Start the release?"):
        ctx.console.print("cancelled", Style.DIM)
        exit_with_code(ErrorCode.USER_ERROR)

    workflow = build_workflow(
        ReleaseRequest(repository=descriptor, version=raw_version.strip()),
        console=ctx.console,
        dry_run=dry_run,
    )
    outcome = drive_release(workflow, ask_conflict_decision)
    if isinstance(outcome, Err):
        failure = outcome.error
        ctx.console.header("Release failed")
        if failure.error.hint:
            ctx.console.print(f"hint: {failure.error.hint}", Style.DIM)
        ctx.console.print("created before the failure:")
        print_result(ctx.console, failure.result)
        print_rollback(ctx.console, failure.rollback)
        exit_with_code(ErrorCode.for_error_kind(failure.error.kind))

    ctx.console.header("Release complete")
    print_result(ctx.console, outcome.value)
    if dry_run:
        return

    ctx.store.touch(descriptor.name)
    saved = ctx.store.save()
    if isinstance(saved, Err):
        ctx.console.warning(saved.error.message)


def rollback(
    repo: str = typer.Argument(..., help="Configured repository name."),
    version: str = typer.Argument(..., help="Version whose artifacts should be removed."),
    all_artifacts: bool = typer.Option(
        False, "--all", help="Attempt every deletion, even for artifacts not found locally."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print git commands without running them."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    """Delete the tags and branches a release of VERSION created."""
    ctx = build_context()
    descriptor = require_repository(ctx, repo)
    names = _resolve_names(ctx, descriptor, version)

    vcs = Repository(descriptor.path, remote=descriptor.remote, console=ctx.console, dry_run=dry_run)
    artifacts = WorkflowArtifacts.everything() if all_artifacts else discover_artifacts(vcs, names)
    if not artifacts.any_created:
        ctx.console.info(f"no release artifacts for {version} found in {descriptor.path}")
        return

    ctx.console.header(f"Rollback {descriptor.name} {version}")
    print_names(ctx.console, names)
    if not yes and not dry_run and not confirm("Delete these tags and branches locally and on the remote?"):
        ctx.console.print("cancelled", Style.DIM)
        exit_with_code(ErrorCode.USER_ERROR)

    manager = RollbackManager(vcs, ctx.console)
    if dry_run:
        report = manager.rollback(names, artifacts, safe_branch=descriptor.branches.develop)
    else:
        with ReleaseLock(vcs.git_dir() / LOCK_FILE_NAME).hold() as held:
            if isinstance(held, Err):
                exit_on_error(Err(LockHeldError.from_lock(held.error)), ctx, ErrorCode.ENV_ERROR)
            report = manager.rollback(names, artifacts, safe_branch=descriptor.branches.develop)

    print_rollback(ctx.console, report)
    if not report.ok:
        exit_with_code(ErrorCode.WORKFLOW_ERROR)


def names(
    repo: str = typer.Argument(..., help="Configured repository name."),
    version: str = typer.Argument(..., help="Version to compute names for."),
) -> None:
    """Print the artifact names a release of VERSION would create."""
    ctx = build_context()
    found = ctx.store.get_repository(repo)
    exit_on_error(found, ctx, ErrorCode.USER_ERROR)
    if isinstance(found, Err):
        return
    print_names(ctx.console, _resolve_names(ctx, found.value, version))


def _resolve_names(ctx: CLIContext, descriptor: RepositoryDescriptor, version: str) -> ReleaseNames:
    checked = validate_version(version)
    exit_on_error(checked, ctx, ErrorCode.USER_ERROR)
    names = compute_names(descriptor, version.strip())
    valid = validate_names(names)
    exit_on_error(valid, ctx, ErrorCode.USER_ERROR)
    return names
