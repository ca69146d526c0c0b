"""Tests for relflow.core.errors."""

import pytest

from relflow.core.errors import ErrorCode


def test_exit_codes_are_stable() -> None:
    assert int(ErrorCode.OK) == 0
    assert int(ErrorCode.USER_ERROR) == 1
    assert int(ErrorCode.ENV_ERROR) == 2
    assert int(ErrorCode.WORKFLOW_ERROR) == 3


@pytest.mark.parametrize(
    ("kind", "expected"),
    [
        ("configuration", ErrorCode.USER_ERROR),
        ("lock_held", ErrorCode.ENV_ERROR),
        ("vcs_operation", ErrorCode.WORKFLOW_ERROR),
        ("merge_aborted", ErrorCode.WORKFLOW_ERROR),
        ("conflict_unresolved", ErrorCode.WORKFLOW_ERROR),
    ],
)
def test_for_error_kind(kind: str, expected: ErrorCode) -> None:
    assert ErrorCode.for_error_kind(kind) is expected
