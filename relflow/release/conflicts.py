"""Merge conflict hand-off between the workflow and the operator.

The coordinator never resolves anything itself. It describes the conflict,
waits (the workflow returns control to its caller), and on resume re-checks
the repository before letting the release continue:

    CLEAN --detect()--> DETECTED --> SUSPENDED
    SUSPENDED --resume()--> RESOLVED            (merge finished and committed)
    SUSPENDED --resume()--> DETECTED --> SUSPENDED   (still unresolved)
    SUSPENDED --abort()---> ABORTED
"""

from __future__ import annotations

from enum import Enum

from relflow.core.result import Err, Ok, Result
from relflow.output.console import ConsoleProtocol, Style
from relflow.release.contracts import ConflictReport, VersionControl
from relflow.release.errors import ConflictUnresolvedError, MergeAbortedError, VcsOperationError


class ConflictState(Enum):
    CLEAN = "clean"
    DETECTED = "detected"
    SUSPENDED = "suspended"
    RESOLVED = "resolved"
    ABORTED = "aborted"

    def __str__(self) -> str:
        return self.value


class ConflictCoordinator:
    def __init__(self, vcs: VersionControl, console: ConsoleProtocol) -> None:
        self._vcs = vcs
        self._console = console
        self.state = ConflictState.CLEAN
        self.report: ConflictReport | None = None
        self._source: str | None = None
        self._target: str | None = None

    def detect(self, *, source: str, target: str) -> Result[ConflictReport, VcsOperationError]:
        """Record a conflicted merge of ``source`` into ``target`` and suspend."""
        self._source = source
        self._target = target
        inspected = self._inspect()
        if isinstance(inspected, Err):
            return inspected

        self.report = inspected.value
        self.state = ConflictState.DETECTED
        self._describe(self.report)
        self.state = ConflictState.SUSPENDED
        return Ok(self.report)

    def resume(self) -> Result[None, ConflictUnresolvedError | VcsOperationError]:
        """Verify the operator's resolution.

        Raises:
            RuntimeError: if there is no suspended merge.
        """
        if self.state is ConflictState.RESOLVED:
            return Ok(None)
        if self.state is not ConflictState.SUSPENDED:
            raise RuntimeError(f"no suspended merge to resume (state: {self.state})")

        inspected = self._inspect()
        if isinstance(inspected, Err):
            return inspected
        report = inspected.value

        if not report.is_resolved:
            self.state = ConflictState.DETECTED
            self.report = report
            self.state = ConflictState.SUSPENDED
            if report.merge_in_progress:
                message = "merge is still in progress"
                hint = "stage the resolved files and run 'git commit' before continuing"
            else:
                message = "conflicted paths remain"
                hint = "resolve and stage every conflicted path before continuing"
            return Err(
                ConflictUnresolvedError(
                    message=message,
                    conflicted_paths=report.conflicted_paths,
                    merge_in_progress=report.merge_in_progress,
                    hint=hint,
                )
            )

        # Without MERGE_HEAD the merge was either committed or aborted by hand.
        if self._source is not None and not self._vcs.is_ancestor(self._source):
            self.state = ConflictState.SUSPENDED
            return Err(
                ConflictUnresolvedError(
                    message=f"'{self._source}' is not merged into '{self._target}'",
                    hint=f"merge it again (git merge {self._source}) and commit, or abort",
                )
            )

        self.state = ConflictState.RESOLVED
        self.report = None
        self._console.success("merge conflicts resolved")
        return Ok(None)

    def abort(self) -> MergeAbortedError:
        """Abort the merge on the operator's request."""
        self._console.print("aborting merge", Style.WARNING)
        aborted = self._vcs.merge_abort()
        self.state = ConflictState.ABORTED
        if isinstance(aborted, Err):
            return MergeAbortedError(
                hint=f"git merge --abort failed: {aborted.error.message}",
            )
        return MergeAbortedError()

    def _inspect(self) -> Result[ConflictReport, VcsOperationError]:
        status = self._vcs.status()
        if isinstance(status, Err):
            return Err(VcsOperationError.from_git("conflict check", status.error))
        return Ok(
            ConflictReport(
                conflicted_paths=tuple(status.value.conflicted),
                merge_in_progress=self._vcs.is_merge_in_progress(),
                source_branch=self._source,
                target_branch=self._target,
            )
        )

    def _describe(self, report: ConflictReport) -> None:
        self._console.warning(f"merge conflicts merging '{self._source}' into '{self._target}'")
        if report.conflicted_paths:
            self._console.print("conflicted paths:", Style.BOLD)
            for path in report.conflicted_paths:
                self._console.print(f"  - {path}")
        self._console.print("to resolve:", Style.DIM)
        self._console.print("  1. edit the conflicted files", Style.DIM)
        self._console.print("  2. stage them: git add <files>", Style.DIM)
        self._console.print("  3. complete the merge: git commit", Style.DIM)
