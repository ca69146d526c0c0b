"""Process exit codes."""

from __future__ import annotations

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit status of a relflow command. Scripts depend on these values."""

    OK = 0
    # bad arguments, unknown repository, malformed relflow.yml
    USER_ERROR = 1
    # another release holds the lock, git unavailable
    ENV_ERROR = 2
    # a release or rollback step failed
    WORKFLOW_ERROR = 3

    @classmethod
    def for_error_kind(cls, kind: str) -> ErrorCode:
        """Exit code for a workflow error ``kind`` literal."""
        match kind:
            case "configuration":
                return cls.USER_ERROR
            case "lock_held":
                return cls.ENV_ERROR
            case _:
                return cls.WORKFLOW_ERROR
