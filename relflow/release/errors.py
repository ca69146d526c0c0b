"""Error types for the release workflow.

Each error is a frozen payload returned inside ``Err(...)``. ``kind`` is a
stable discriminator that views can switch on without isinstance checks.
A merge conflict is *not* an error: see ``MergeOutcome.CONFLICTED``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from relflow.core.config import ConfigurationError
from relflow.git.lock import LockHeld
from relflow.git.repository import GitError

__all__ = [
    "ConfigurationError",
    "ConflictUnresolvedError",
    "LockHeldError",
    "MergeAbortedError",
    "ReleaseInterruptedError",
    "VcsOperationError",
    "WorkflowError",
    "pretty",
]


@dataclass(frozen=True, slots=True)
class VcsOperationError:
    """A git primitive failed for a reason other than a merge conflict."""

    message: str
    command: str | None = None
    hint: str | None = None
    kind: Literal["vcs_operation"] = "vcs_operation"

    @classmethod
    def from_git(cls, step: str, error: GitError) -> VcsOperationError:
        return cls(
            message=f"{step} failed: git {error.command}",
            command=error.command,
            hint=error.message or None,
        )


@dataclass(frozen=True, slots=True)
class ConflictUnresolvedError:
    """The operator asked to continue but the merge is not finished."""

    message: str
    conflicted_paths: tuple[str, ...] = ()
    merge_in_progress: bool = False
    hint: str | None = None
    kind: Literal["conflict_unresolved"] = "conflict_unresolved"


@dataclass(frozen=True, slots=True)
class MergeAbortedError:
    """The operator aborted the merge; the run ends and is rolled back."""

    message: str = "merge aborted by operator"
    hint: str | None = None
    kind: Literal["merge_aborted"] = "merge_aborted"


@dataclass(frozen=True, slots=True)
class ReleaseInterruptedError:
    """The run was cut off (Ctrl-C, closed input) before it finished."""

    message: str = "release interrupted"
    hint: str | None = None
    kind: Literal["interrupted"] = "interrupted"


@dataclass(frozen=True, slots=True)
class LockHeldError:
    """Another release owns the working directory."""

    message: str
    path: Path | None = None
    hint: str | None = None
    kind: Literal["lock_held"] = "lock_held"

    @classmethod
    def from_lock(cls, held: LockHeld) -> LockHeldError:
        return cls(
            message=held.message,
            path=held.path,
            hint=f"if no release is running, delete {held.path}",
        )


type WorkflowError = (
    VcsOperationError
    | ConflictUnresolvedError
    | MergeAbortedError
    | ReleaseInterruptedError
    | ConfigurationError
    | LockHeldError
)


def pretty(error: WorkflowError) -> str:
    """One-line rendering with the hint, if any."""
    if error.hint:
        return f"{error.message} (hint: {error.hint})"
    return error.message
