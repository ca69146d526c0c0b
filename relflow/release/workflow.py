"""The release workflow: nine git steps with one suspension point.

A run is driven by the caller, not by a blocking prompt:

    workflow = build_workflow(request, console=console)
    status = workflow.start()
    # Ok(AwaitingOperator(report)) -> operator resolves, then:
    status = workflow.resume(OperatorDecision.CONTINUE)
    # Ok(Completed(result)) | Err(ReleaseFailure(...))

Fatal failures roll back everything the run created and release the lock.
A refused resume (conflict still unresolved) is not fatal: the run stays
suspended and ``resume`` may be called again.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from relflow.core.result import Err, Ok, Result
from relflow.git.lock import LOCK_FILE_NAME, ReleaseLock
from relflow.git.repository import GitError, MergeOutcome, Repository
from relflow.output.console import ConsoleProtocol
from relflow.release.conflicts import ConflictCoordinator
from relflow.release.contracts import (
    ConflictReport,
    OperatorDecision,
    ReleaseRequest,
    ReleaseResult,
    VersionControl,
)
from relflow.release.errors import (
    ConflictUnresolvedError,
    LockHeldError,
    ReleaseInterruptedError,
    VcsOperationError,
    WorkflowError,
    pretty,
)
from relflow.release.model import Artifact, ReleaseNames, WorkflowArtifacts
from relflow.release.naming import KindProfile, compute_names, resolve_profile, validate_names, validate_version
from relflow.release.rollback import RollbackManager, RollbackReport


class WorkflowState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Completed:
    result: ReleaseResult


@dataclass(frozen=True, slots=True)
class AwaitingOperator:
    report: ConflictReport


type WorkflowStatus = Completed | AwaitingOperator


@dataclass(frozen=True, slots=True)
class ReleaseFailure:
    """A run that did not complete.

    ``fatal`` is False only for a refused resume; the run is then still
    suspended and ``rollback`` is empty.
    """

    error: WorkflowError
    result: ReleaseResult
    rollback: RollbackReport
    fatal: bool = True


# A step either finishes (None) or suspends on a merge conflict.
type StepResult = Result[ConflictReport | None, WorkflowError]

TOTAL_STEPS = 9


class ReleaseWorkflow:
    def __init__(
        self,
        request: ReleaseRequest,
        *,
        vcs: VersionControl,
        coordinator: ConflictCoordinator,
        rollback: RollbackManager,
        console: ConsoleProtocol,
        lock: ReleaseLock | None = None,
        profile: KindProfile | None = None,
    ) -> None:
        self.request = request
        self.profile = profile or resolve_profile(request.repository)
        self.names: ReleaseNames = compute_names(request.repository, request.version, self.profile)
        self.artifacts = WorkflowArtifacts()
        self.state = WorkflowState.IDLE

        self._vcs = vcs
        self._coordinator = coordinator
        self._rollback = rollback
        self._console = console
        self._lock = lock
        self._step = 0

        develop = request.repository.branches.develop
        production = request.repository.branches.production
        self._steps: tuple[tuple[str, Callable[[], StepResult]], ...] = (
            ("Fetch remote refs", self._fetch),
            (f"Update {develop}", self._update_develop),
            (f"Create rollback tag {self.names.rollback_tag}", self._rollback_tag),
            (f"Create release branch {self.names.release_branch}", self._release_branch),
            (f"Update {production}", self._update_production),
            (f"Merge {production} into {self.names.release_branch}", self._merge_production),
            (f"Create version tag {self.names.version_tag}", self._version_tag),
            (f"Push {self.names.release_branch}", self._push_release_branch),
            (f"Create final release branch {self.names.final_branch}", self._final_branch),
        )

    @property
    def pending_report(self) -> ConflictReport:
        """The conflict the run is suspended on."""
        report = self._coordinator.report
        if self.state is not WorkflowState.SUSPENDED or report is None:
            raise RuntimeError("workflow is not suspended on a conflict")
        return report

    def start(self) -> Result[WorkflowStatus, ReleaseFailure]:
        if self.state is not WorkflowState.IDLE:
            raise RuntimeError(f"workflow already started (state: {self.state})")

        version = validate_version(self.request.version)
        if isinstance(version, Err):
            return self._fail(version.error)
        names = validate_names(self.names)
        if isinstance(names, Err):
            return self._fail(names.error)

        if self._lock is not None:
            acquired = self._lock.acquire()
            if isinstance(acquired, Err):
                return self._fail(LockHeldError.from_lock(acquired.error))

        self.state = WorkflowState.RUNNING
        repo = self.request.repository
        self._console.header(f"Release {repo.name} {self.request.version} ({repo.branches.kind})")
        return self._advance()

    def resume(self, decision: OperatorDecision) -> Result[WorkflowStatus, ReleaseFailure]:
        if self.state is not WorkflowState.SUSPENDED:
            raise RuntimeError(f"workflow is not suspended (state: {self.state})")

        if decision is OperatorDecision.ABORT:
            return self._fail(self._coordinator.abort())

        resumed = self._coordinator.resume()
        if isinstance(resumed, Err):
            error = resumed.error
            if isinstance(error, ConflictUnresolvedError):
                self._console.warning(pretty(error))
                return Err(
                    ReleaseFailure(
                        error=error,
                        result=self._result(error.message),
                        rollback=RollbackReport(),
                        fatal=False,
                    )
                )
            return self._fail(error)

        self.state = WorkflowState.RUNNING
        self._step += 1
        return self._advance()

    def interrupt(self) -> ReleaseFailure | None:
        """End an unfinished run that its driver cannot continue.

        Rolls back like any fatal failure (a pending merge is aborted first)
        and releases the lock. No-op once the run has completed or failed.
        """
        if self.state not in (WorkflowState.RUNNING, WorkflowState.SUSPENDED):
            return None
        failed = self._fail(ReleaseInterruptedError())
        return failed.error if isinstance(failed, Err) else None

    def _advance(self) -> Result[WorkflowStatus, ReleaseFailure]:
        while self._step < len(self._steps):
            title, handler = self._steps[self._step]
            self._console.step(self._step + 1, TOTAL_STEPS, title)
            outcome = handler()
            if isinstance(outcome, Err):
                return self._fail(outcome.error)
            if outcome.value is not None:
                self.state = WorkflowState.SUSPENDED
                return Ok(AwaitingOperator(outcome.value))
            self._step += 1

        self.state = WorkflowState.COMPLETED
        self._release_lock()
        self._console.success(f"released {self.request.repository.name} {self.request.version}")
        return Ok(Completed(self._result()))

    def _fail(self, error: WorkflowError) -> Result[WorkflowStatus, ReleaseFailure]:
        self.state = WorkflowState.FAILED
        self._console.error(pretty(error))
        try:
            report = self._rollback.rollback(
                self.names,
                self.artifacts,
                safe_branch=self.request.repository.branches.develop,
            )
        finally:
            self._release_lock()
        return Err(ReleaseFailure(error=error, result=self._result(error.message), rollback=report))

    def _release_lock(self) -> None:
        if self._lock is not None:
            self._lock.release()

    def _result(self, error_message: str | None = None) -> ReleaseResult:
        def created(artifact: Artifact) -> str | None:
            return self.names.name_of(artifact) if self.artifacts.is_created(artifact) else None

        return ReleaseResult(
            success=error_message is None,
            rollback_tag=created(Artifact.ROLLBACK_TAG),
            release_branch=created(Artifact.RELEASE_BRANCH),
            version_tag=created(Artifact.VERSION_TAG),
            final_release_branch=created(Artifact.FINAL_BRANCH),
            error_message=error_message,
        )

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _fetch(self) -> StepResult:
        fetched = self._vcs.fetch_prune()
        if isinstance(fetched, Err):
            return _vcs_error("fetch", fetched.error)
        if not self.profile.fetch_develop_ref:
            return Ok(None)

        branches = self.request.repository.branches
        # git refuses to fetch into the checked-out branch.
        if self._vcs.current_branch() == branches.develop:
            moved = self._vcs.checkout(branches.production)
            if isinstance(moved, Err):
                return _vcs_error(f"checkout {branches.production}", moved.error)

        fetched = self._vcs.fetch_branch(
            branches.develop, recurse_submodules=self.profile.recurse_submodules
        )
        if isinstance(fetched, Err):
            return _vcs_error(f"fetch {branches.develop}", fetched.error)
        return Ok(None)

    def _update_develop(self) -> StepResult:
        return self._checkout_and_pull(self.request.repository.branches.develop)

    def _rollback_tag(self) -> StepResult:
        name = self.names.rollback_tag
        created = self._vcs.tag(name)
        if isinstance(created, Err):
            return _vcs_error("create rollback tag", created.error)
        self.artifacts.mark_created(Artifact.ROLLBACK_TAG)

        pushed = self._vcs.push_tag(name)
        if isinstance(pushed, Err):
            return _vcs_error("push rollback tag", pushed.error)
        self.artifacts.mark_pushed(Artifact.ROLLBACK_TAG)
        return Ok(None)

    def _release_branch(self) -> StepResult:
        created = self._vcs.create_branch(
            self.names.release_branch, self.request.repository.branches.develop
        )
        if isinstance(created, Err):
            return _vcs_error("create release branch", created.error)
        self.artifacts.mark_created(Artifact.RELEASE_BRANCH)
        return Ok(None)

    def _update_production(self) -> StepResult:
        return self._checkout_and_pull(self.request.repository.branches.production)

    def _merge_production(self) -> StepResult:
        production = self.request.repository.branches.production
        release = self.names.release_branch

        moved = self._vcs.checkout(release)
        if isinstance(moved, Err):
            return _vcs_error(f"checkout {release}", moved.error)

        merged = self._vcs.merge(production)
        if isinstance(merged, Err):
            return _vcs_error(f"merge {production}", merged.error)
        if merged.value is MergeOutcome.CLEAN:
            return Ok(None)

        detected = self._coordinator.detect(source=production, target=release)
        if isinstance(detected, Err):
            return detected
        return Ok(detected.value)

    def _version_tag(self) -> StepResult:
        name = self.names.version_tag
        created = self._vcs.tag(name, message=f"Release {name}")
        if isinstance(created, Err):
            return _vcs_error("create version tag", created.error)
        self.artifacts.mark_created(Artifact.VERSION_TAG)

        pushed = self._vcs.push_tag(name)
        if isinstance(pushed, Err):
            return _vcs_error("push version tag", pushed.error)
        self.artifacts.mark_pushed(Artifact.VERSION_TAG)
        return Ok(None)

    def _push_release_branch(self) -> StepResult:
        pushed = self._vcs.push_branch(self.names.release_branch, set_upstream=True)
        if isinstance(pushed, Err):
            return _vcs_error("push release branch", pushed.error)
        self.artifacts.mark_pushed(Artifact.RELEASE_BRANCH)
        return Ok(None)

    def _final_branch(self) -> StepResult:
        name = self.names.final_branch
        created = self._vcs.create_branch(name, self.names.release_branch)
        if isinstance(created, Err):
            return _vcs_error("create final release branch", created.error)
        self.artifacts.mark_created(Artifact.FINAL_BRANCH)

        pushed = self._vcs.push_branch(name)
        if isinstance(pushed, Err):
            return _vcs_error("push final release branch", pushed.error)
        self.artifacts.mark_pushed(Artifact.FINAL_BRANCH)
        return Ok(None)

    def _checkout_and_pull(self, branch: str) -> StepResult:
        moved = self._vcs.checkout(branch)
        if isinstance(moved, Err):
            return _vcs_error(f"checkout {branch}", moved.error)
        pulled = self._vcs.pull(branch)
        if isinstance(pulled, Err):
            return _vcs_error(f"pull {branch}", pulled.error)
        return Ok(None)


def _vcs_error(step: str, error: GitError) -> StepResult:
    return Err(VcsOperationError.from_git(step, error))


def drive_release(
    workflow: ReleaseWorkflow,
    ask: Callable[[ConflictReport], OperatorDecision],
) -> Result[ReleaseResult, ReleaseFailure]:
    """Run ``workflow`` to the end, asking ``ask`` at every suspension.

    If ``ask`` or a step is interrupted (KeyboardInterrupt, EOF on the
    prompt), the run is rolled back and its lock released before the
    exception propagates.
    """
    try:
        outcome = workflow.start()
        while True:
            if isinstance(outcome, Err):
                if outcome.error.fatal:
                    return Err(outcome.error)
                report = workflow.pending_report
            elif isinstance(outcome.value, Completed):
                return Ok(outcome.value.result)
            else:
                report = outcome.value.report
            outcome = workflow.resume(ask(report))
    except BaseException:
        workflow.interrupt()
        raise


def build_workflow(
    request: ReleaseRequest,
    *,
    console: ConsoleProtocol,
    dry_run: bool = False,
) -> ReleaseWorkflow:
    """Wire a workflow against the real git repository of ``request``.

    Dry runs take no lock: they only echo mutating commands.
    """
    repo = request.repository
    vcs = Repository(repo.path, remote=repo.remote, console=console, dry_run=dry_run)
    lock = None if dry_run else ReleaseLock(vcs.git_dir() / LOCK_FILE_NAME)
    return ReleaseWorkflow(
        request,
        vcs=vcs,
        coordinator=ConflictCoordinator(vcs, console),
        rollback=RollbackManager(vcs, console),
        console=console,
        lock=lock,
    )
