"""Cross-layer contracts for the release workflow.

``VersionControl`` is the narrow port the workflow, conflict coordinator
and rollback manager talk to. ``relflow.git.Repository`` implements it;
tests substitute scripted fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol

from relflow.core.config import RepositoryDescriptor
from relflow.core.result import Result
from relflow.git.repository import GitError, GitStatus, MergeOutcome


class VersionControl(Protocol):
    def current_branch(self) -> str | None: ...

    def status(self) -> Result[GitStatus, GitError]: ...

    def is_merge_in_progress(self) -> bool: ...

    def is_ancestor(self, ref: str, of: str = "HEAD") -> bool: ...

    def git_dir(self) -> Path: ...

    def tag_exists(self, name: str) -> bool: ...

    def branch_exists(self, name: str) -> bool: ...

    def fetch_prune(self) -> Result[None, GitError]: ...

    def fetch_branch(self, name: str, *, recurse_submodules: bool = False) -> Result[None, GitError]: ...

    def checkout(self, branch: str) -> Result[None, GitError]: ...

    def pull(self, branch: str) -> Result[None, GitError]: ...

    def create_branch(self, name: str, from_ref: str | None = None) -> Result[None, GitError]: ...

    def tag(self, name: str, *, message: str | None = None) -> Result[None, GitError]: ...

    def push_tag(self, name: str) -> Result[None, GitError]: ...

    def push_branch(self, name: str, *, set_upstream: bool = False) -> Result[None, GitError]: ...

    def merge(self, source: str) -> Result[MergeOutcome, GitError]: ...

    def merge_abort(self) -> Result[None, GitError]: ...

    def delete_tag(self, name: str) -> Result[None, GitError]: ...

    def delete_remote_tag(self, name: str) -> Result[None, GitError]: ...

    def delete_branch(self, name: str) -> Result[None, GitError]: ...

    def delete_remote_branch(self, name: str) -> Result[None, GitError]: ...


class OperatorDecision(Enum):
    """Answer to a suspended merge."""

    CONTINUE = "continue"
    ABORT = "abort"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ReleaseRequest:
    """One release of one repository at one version."""

    repository: RepositoryDescriptor
    version: str


@dataclass(frozen=True, slots=True)
class ReleaseResult:
    """Terminal outcome of a run.

    Artifact names are set once the artifact exists, so a failed result
    still tells the operator what had been created before the failure.
    """

    success: bool
    rollback_tag: str | None = None
    release_branch: str | None = None
    version_tag: str | None = None
    final_release_branch: str | None = None
    error_message: str | None = None


@dataclass(frozen=True, slots=True)
class ConflictReport:
    """What the operator has to resolve before resuming."""

    conflicted_paths: tuple[str, ...]
    merge_in_progress: bool
    source_branch: str | None = None
    target_branch: str | None = None

    @property
    def is_resolved(self) -> bool:
        return not self.conflicted_paths and not self.merge_in_progress
