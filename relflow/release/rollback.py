"""Best-effort reversal of a partial release.

Deletions run in reverse creation order. Each one is attempted on its own:
a failure is printed and recorded, then the next artifact is tried. The
manager never raises; the report says what happened.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from relflow.core.result import Err, Result
from relflow.git.repository import GitError
from relflow.output.console import ConsoleProtocol, Style
from relflow.release.contracts import VersionControl
from relflow.release.model import Artifact, ReleaseNames, WorkflowArtifacts


class ArtifactKind(Enum):
    """One deletable thing: an artifact either in the local repo or on the remote."""

    ROLLBACK_TAG_LOCAL = "local rollback tag"
    ROLLBACK_TAG_REMOTE = "remote rollback tag"
    RELEASE_BRANCH_LOCAL = "local release branch"
    VERSION_TAG_LOCAL = "local version tag"
    VERSION_TAG_REMOTE = "remote version tag"
    RELEASE_BRANCH_REMOTE = "remote release branch"
    FINAL_BRANCH_LOCAL = "local final release branch"
    FINAL_BRANCH_REMOTE = "remote final release branch"

    def __str__(self) -> str:
        return self.value


# Creation order of the workflow; rollback walks it backwards.
CREATION_ORDER: tuple[tuple[ArtifactKind, Artifact, bool], ...] = (
    (ArtifactKind.ROLLBACK_TAG_LOCAL, Artifact.ROLLBACK_TAG, False),
    (ArtifactKind.ROLLBACK_TAG_REMOTE, Artifact.ROLLBACK_TAG, True),
    (ArtifactKind.RELEASE_BRANCH_LOCAL, Artifact.RELEASE_BRANCH, False),
    (ArtifactKind.VERSION_TAG_LOCAL, Artifact.VERSION_TAG, False),
    (ArtifactKind.VERSION_TAG_REMOTE, Artifact.VERSION_TAG, True),
    (ArtifactKind.RELEASE_BRANCH_REMOTE, Artifact.RELEASE_BRANCH, True),
    (ArtifactKind.FINAL_BRANCH_LOCAL, Artifact.FINAL_BRANCH, False),
    (ArtifactKind.FINAL_BRANCH_REMOTE, Artifact.FINAL_BRANCH, True),
)


@dataclass(frozen=True, slots=True)
class RollbackOutcome:
    kind: ArtifactKind
    name: str
    ok: bool
    message: str | None = None


@dataclass(frozen=True, slots=True)
class RollbackTally:
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0


@dataclass(frozen=True, slots=True)
class RollbackReport:
    outcomes: tuple[RollbackOutcome, ...] = ()

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.ok)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    @property
    def is_empty(self) -> bool:
        return not self.outcomes

    def tally(self) -> dict[ArtifactKind, RollbackTally]:
        """Attempted/succeeded/failed counts per artifact kind."""
        out: dict[ArtifactKind, RollbackTally] = {}
        for o in self.outcomes:
            t = out.get(o.kind, RollbackTally())
            out[o.kind] = RollbackTally(
                attempted=t.attempted + 1,
                succeeded=t.succeeded + (1 if o.ok else 0),
                failed=t.failed + (0 if o.ok else 1),
            )
        return out


class RollbackManager:
    def __init__(self, vcs: VersionControl, console: ConsoleProtocol) -> None:
        self._vcs = vcs
        self._console = console

    def rollback(
        self,
        names: ReleaseNames,
        artifacts: WorkflowArtifacts,
        *,
        safe_branch: str,
    ) -> RollbackReport:
        """Delete whatever ``artifacts`` says was created.

        ``safe_branch`` is checked out first so local release branches can
        be deleted.
        """
        plan = self._plan(names, artifacts)
        if not plan:
            self._console.print("rollback: nothing was created, nothing to undo", Style.DIM)
            return RollbackReport()

        self._console.header("Rollback")
        self._prepare(plan, safe_branch=safe_branch)

        outcomes: list[RollbackOutcome] = []
        for kind, name, delete in plan:
            result = delete(name)
            if isinstance(result, Err):
                self._console.warning(f"could not delete {kind} {name}: {result.error.message}")
                outcomes.append(RollbackOutcome(kind, name, ok=False, message=result.error.message))
            else:
                self._console.success(f"deleted {kind} {name}")
                outcomes.append(RollbackOutcome(kind, name, ok=True))

        report = RollbackReport(tuple(outcomes))
        if not report.ok:
            self._console.warning(
                f"rollback incomplete: {report.failed} of {report.attempted} deletions failed; "
                "clean up the remaining items manually"
            )
        return report

    def _plan(
        self, names: ReleaseNames, artifacts: WorkflowArtifacts
    ) -> list[tuple[ArtifactKind, str, Callable[[str], Result[None, GitError]]]]:
        plan: list[tuple[ArtifactKind, str, Callable[[str], Result[None, GitError]]]] = []
        for kind, artifact, remote in reversed(CREATION_ORDER):
            done = artifacts.is_pushed(artifact) if remote else artifacts.is_created(artifact)
            if not done:
                continue
            plan.append((kind, names.name_of(artifact), self._deleter(artifact, remote=remote)))
        return plan

    def _deleter(
        self, artifact: Artifact, *, remote: bool
    ) -> Callable[[str], Result[None, GitError]]:
        if artifact.is_tag:
            return self._vcs.delete_remote_tag if remote else self._vcs.delete_tag
        return self._vcs.delete_remote_branch if remote else self._vcs.delete_branch

    def _prepare(
        self,
        plan: list[tuple[ArtifactKind, str, Callable[[str], Result[None, GitError]]]],
        *,
        safe_branch: str,
    ) -> None:
        if self._vcs.is_merge_in_progress():
            aborted = self._vcs.merge_abort()
            if isinstance(aborted, Err):
                self._console.warning(f"could not abort the pending merge: {aborted.error.message}")

        local_branches = {
            name
            for kind, name, _ in plan
            if kind in (ArtifactKind.RELEASE_BRANCH_LOCAL, ArtifactKind.FINAL_BRANCH_LOCAL)
        }
        if self._vcs.current_branch() in local_branches:
            switched = self._vcs.checkout(safe_branch)
            if isinstance(switched, Err):
                self._console.warning(f"could not check out {safe_branch}: {switched.error.message}")


def discover_artifacts(vcs: VersionControl, names: ReleaseNames) -> WorkflowArtifacts:
    """Artifacts of ``names`` that exist in the local repository.

    Remote state is not queried: anything present locally is assumed pushed
    so its remote copy is removed too.
    """
    artifacts = WorkflowArtifacts()
    for artifact in Artifact:
        name = names.name_of(artifact)
        exists = vcs.tag_exists(name) if artifact.is_tag else vcs.branch_exists(name)
        if exists:
            artifacts.mark_created(artifact)
            artifacts.mark_pushed(artifact)
    return artifacts
