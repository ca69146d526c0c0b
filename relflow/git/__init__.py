"""Git operations for the release workflow.

- Repository: git primitives bound to one working directory
- ReleaseLock: exclusive per-directory lease for a running release

Usage:
    from relflow.git import Repository

    repo = Repository(Path("/path/to/repo"))
    if repo.is_merge_in_progress():
        print(repo.status().unwrap().conflicted)
"""

from relflow.git.lock import LOCK_FILE_NAME, LockHeld, ReleaseLock
from relflow.git.repository import (
    UNMERGED_CODES,
    GitError,
    GitStatus,
    MergeOutcome,
    Repository,
    StatusEntry,
    clone,
)

__all__ = [
    # Repository
    "GitError",
    "GitStatus",
    "MergeOutcome",
    "Repository",
    "StatusEntry",
    "UNMERGED_CODES",
    "clone",
    # Lock
    "LOCK_FILE_NAME",
    "LockHeld",
    "ReleaseLock",
]
