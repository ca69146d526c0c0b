"""Release workflow.

- naming: artifact names per workflow kind
- conflicts: merge conflict suspension and resume
- rollback: best-effort reversal of created artifacts
- workflow: the nine-step release state machine
"""

from __future__ import annotations

from .conflicts import ConflictCoordinator, ConflictState
from .contracts import ConflictReport, OperatorDecision, ReleaseRequest, ReleaseResult
from .errors import (
    ConflictUnresolvedError,
    LockHeldError,
    MergeAbortedError,
    ReleaseInterruptedError,
    VcsOperationError,
    WorkflowError,
)
from .model import Artifact, ReleaseNames, WorkflowArtifacts
from .naming import compute_names
from .rollback import RollbackManager, RollbackReport, discover_artifacts
from .workflow import (
    AwaitingOperator,
    Completed,
    ReleaseFailure,
    ReleaseWorkflow,
    build_workflow,
    drive_release,
)

__all__ = [
    "Artifact",
    "AwaitingOperator",
    "Completed",
    "ConflictCoordinator",
    "ConflictReport",
    "ConflictState",
    "ConflictUnresolvedError",
    "LockHeldError",
    "MergeAbortedError",
    "OperatorDecision",
    "ReleaseFailure",
    "ReleaseInterruptedError",
    "ReleaseNames",
    "ReleaseRequest",
    "ReleaseResult",
    "ReleaseWorkflow",
    "RollbackManager",
    "RollbackReport",
    "VcsOperationError",
    "WorkflowArtifacts",
    "WorkflowError",
    "build_workflow",
    "compute_names",
    "discover_artifacts",
    "drive_release",
]
