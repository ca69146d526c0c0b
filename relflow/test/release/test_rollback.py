"""Tests for release/rollback.py."""

from __future__ import annotations

from relflow.output.console import MockConsole
from relflow.release.model import Artifact, ReleaseNames, WorkflowArtifacts
from relflow.release.rollback import ArtifactKind, RollbackManager, discover_artifacts
from relflow.test.release.fake_git import FakeGit

NAMES = ReleaseNames(
    rollback_tag="rollback_develop_v1.0.0",
    release_branch="release_develop_1.0.0",
    version_tag="v_shop_1.0.0",
    final_branch="release_master_1.0.0",
)


def released_repo() -> FakeGit:
    """A clone where every artifact of NAMES exists locally and remotely."""
    git = FakeGit(current="release_master_1.0.0")
    git.tags |= {NAMES.rollback_tag, NAMES.version_tag}
    git.remote_tags |= {NAMES.rollback_tag, NAMES.version_tag}
    git.branches |= {NAMES.release_branch, NAMES.final_branch}
    git.remote_branches |= {NAMES.release_branch, NAMES.final_branch}
    return git


class TestRollback:
    def test_full_rollback_in_reverse_order(self) -> None:
        git = released_repo()

        report = RollbackManager(git, MockConsole()).rollback(
            NAMES, WorkflowArtifacts.everything(), safe_branch="develop"
        )

        assert git.mutations() == [
            "delete-remote-branch release_master_1.0.0",
            "delete-branch release_master_1.0.0",
            "delete-remote-branch release_develop_1.0.0",
            "delete-remote-tag v_shop_1.0.0",
            "delete-tag v_shop_1.0.0",
            "delete-branch release_develop_1.0.0",
            "delete-remote-tag rollback_develop_v1.0.0",
            "delete-tag rollback_develop_v1.0.0",
        ]
        assert report.ok
        assert report.attempted == 8
        assert git.tags == set()
        assert git.branches == {"develop", "master"}
        assert git.remote_branches == {"develop", "master"}

    def test_one_deletion_per_kind(self) -> None:
        report = RollbackManager(released_repo(), MockConsole()).rollback(
            NAMES, WorkflowArtifacts.everything(), safe_branch="develop"
        )

        tally = report.tally()
        assert set(tally) == set(ArtifactKind)
        assert all(t.attempted == 1 and t.succeeded == 1 for t in tally.values())

    def test_checks_out_safe_branch_first(self) -> None:
        git = released_repo()

        RollbackManager(git, MockConsole()).rollback(
            NAMES, WorkflowArtifacts.everything(), safe_branch="develop"
        )

        assert git.calls[0] == "checkout develop"
        assert git.current == "develop"

    def test_aborts_pending_merge_first(self) -> None:
        git = released_repo()
        git.current = NAMES.release_branch
        git.merge_in_progress = True
        artifacts = WorkflowArtifacts(release_branch_created=True)

        report = RollbackManager(git, MockConsole()).rollback(NAMES, artifacts, safe_branch="develop")

        assert git.calls[:2] == ["merge --abort", "checkout develop"]
        assert report.ok

    def test_failures_are_independent(self) -> None:
        git = released_repo()
        git.failures["delete-remote-tag v_shop_1.0.0"] = "remote rejected"
        console = MockConsole()

        report = RollbackManager(git, console).rollback(
            NAMES, WorkflowArtifacts.everything(), safe_branch="develop"
        )

        assert report.attempted == 8
        assert report.failed == 1
        assert report.succeeded == 7
        assert not report.ok
        failed = [o for o in report.outcomes if not o.ok]
        assert failed[0].kind is ArtifactKind.VERSION_TAG_REMOTE
        assert failed[0].message == "remote rejected"
        assert "delete-tag rollback_develop_v1.0.0" in git.calls
        assert console.find("rollback incomplete")

    def test_only_created_artifacts(self) -> None:
        """Rollback tag pushed, release branch local only."""
        git = released_repo()
        git.current = NAMES.release_branch
        artifacts = WorkflowArtifacts(
            rollback_tag_created=True,
            rollback_tag_pushed=True,
            release_branch_created=True,
        )

        report = RollbackManager(git, MockConsole()).rollback(NAMES, artifacts, safe_branch="develop")

        assert git.mutations() == [
            "delete-branch release_develop_1.0.0",
            "delete-remote-tag rollback_develop_v1.0.0",
            "delete-tag rollback_develop_v1.0.0",
        ]
        assert report.ok

    def test_nothing_created(self) -> None:
        git = FakeGit()
        console = MockConsole()

        report = RollbackManager(git, console).rollback(NAMES, WorkflowArtifacts(), safe_branch="develop")

        assert report.is_empty
        assert report.ok
        assert git.calls == []
        assert console.find("nothing to undo")

    def test_checkout_failure_only_warns(self) -> None:
        git = released_repo()
        git.failures["checkout develop"] = "local changes would be overwritten"
        console = MockConsole()

        report = RollbackManager(git, console).rollback(
            NAMES, WorkflowArtifacts.everything(), safe_branch="develop"
        )

        assert console.find("could not check out develop")
        # The final branch is still checked out, so only its local deletion fails.
        assert [o.kind for o in report.outcomes if not o.ok] == [ArtifactKind.FINAL_BRANCH_LOCAL]


class TestDiscoverArtifacts:
    def test_marks_local_artifacts(self) -> None:
        git = FakeGit()
        git.tags.add(NAMES.rollback_tag)
        git.branches.add(NAMES.release_branch)

        artifacts = discover_artifacts(git, NAMES)

        assert artifacts.is_created(Artifact.ROLLBACK_TAG)
        assert artifacts.is_pushed(Artifact.ROLLBACK_TAG)
        assert artifacts.is_created(Artifact.RELEASE_BRANCH)
        assert not artifacts.is_created(Artifact.VERSION_TAG)
        assert not artifacts.is_created(Artifact.FINAL_BRANCH)

    def test_nothing_found(self) -> None:
        assert not discover_artifacts(FakeGit(), NAMES).any_created
