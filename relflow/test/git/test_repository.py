"""Tests for git/repository.py."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

from relflow.core.result import Err, Ok
from relflow.git.repository import GitStatus, MergeOutcome, Repository, StatusEntry, clone
from relflow.output.console import MockConsole, Style


def make_completed_process(
    stdout: str = "",
    stderr: str = "",
    returncode: int = 0,
) -> subprocess.CompletedProcess[str]:
    """Create a mock CompletedProcess."""
    return subprocess.CompletedProcess(
        args=["git"],
        returncode=returncode,
        stdout=stdout,
        stderr=stderr,
    )


def git_args(mock_run: MagicMock, call: int = -1) -> list[str]:
    """Arguments after ``git -C <path>`` of a recorded call."""
    cmd: list[str] = mock_run.call_args_list[call].args[0]
    assert cmd[:2] == ["git", "-C"]
    return cmd[3:]


# =============================================================================
# StatusEntry / GitStatus
# =============================================================================


class TestStatusEntry:
    def test_unmerged_codes(self) -> None:
        """Every two-sided conflict code counts as unmerged."""
        for xy in ("UU", "AA", "DD", "AU", "UA", "DU", "UD"):
            assert StatusEntry(xy=xy, path="f").is_unmerged is True

    def test_regular_changes_are_not_unmerged(self) -> None:
        for xy in ("M ", " M", "A ", "??", "R "):
            assert StatusEntry(xy=xy, path="f").is_unmerged is False

    def test_untracked(self) -> None:
        assert StatusEntry(xy="??", path="new.py").is_untracked is True

    def test_pretty_xy(self) -> None:
        assert StatusEntry(xy=" M", path="f").pretty_xy() == ".M"
        assert StatusEntry(xy="UU", path="f").pretty_xy() == "UU"


class TestGitStatus:
    def test_clean(self) -> None:
        status = GitStatus(branch="develop")
        assert status.is_clean is True
        assert status.has_conflicts is False
        assert status.conflicted == []

    def test_conflicted_paths(self) -> None:
        entries = (
            StatusEntry(xy="UU", path="app.py"),
            StatusEntry(xy="M ", path="staged.py"),
            StatusEntry(xy="AA", path="new.py"),
        )
        status = GitStatus(branch="release_develop_1.0.0", entries=entries)

        assert status.has_conflicts is True
        assert status.conflicted == ["app.py", "new.py"]


# =============================================================================
# Repository - mocked subprocess
# =============================================================================


class TestRepositoryIntrospection:
    def test_exists(self, tmp_path: Path) -> None:
        assert Repository(tmp_path).exists() is False
        (tmp_path / ".git").mkdir()
        assert Repository(tmp_path).exists() is True

    @patch("subprocess.run")
    def test_status_with_conflicts(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(
            stdout="## release_develop_1.0.0\nUU app.py\nAA new.py\n M other.py\n"
        )

        result = Repository(tmp_path).status()

        assert isinstance(result, Ok)
        status = result.value
        assert status.branch == "release_develop_1.0.0"
        assert status.upstream is None
        assert status.conflicted == ["app.py", "new.py"]
        assert git_args(mock_run) == ["status", "--porcelain=v1", "-b"]

    @patch("subprocess.run")
    def test_status_ahead_behind(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(
            stdout="## develop...origin/develop [ahead 3, behind 2]\n"
        )

        status = Repository(tmp_path).status().unwrap()

        assert status.upstream == "origin/develop"
        assert (status.ahead, status.behind) == (3, 2)

    @patch("subprocess.run")
    def test_status_error(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(
            returncode=128, stderr="fatal: not a git repository"
        )

        result = Repository(tmp_path).status()

        assert isinstance(result, Err)
        assert result.error.command == "status"
        assert result.error.returncode == 128
        assert "not a git repository" in result.error.message

    @patch("subprocess.run")
    def test_status_porcelain(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(stdout="## develop\nUU app.py\n")

        result = Repository(tmp_path).status_porcelain()

        assert result == Ok((StatusEntry(xy="UU", path="app.py"),))

    @patch("subprocess.run")
    def test_current_branch(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(stdout="develop\n")
        assert Repository(tmp_path).current_branch() == "develop"

    @patch("subprocess.run")
    def test_current_branch_detached(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(stdout="HEAD\n")
        assert Repository(tmp_path).current_branch() is None

    @patch("subprocess.run")
    def test_merge_in_progress_uses_git_dir(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(stdout=".git\n")
        (tmp_path / ".git").mkdir()
        repo = Repository(tmp_path)

        assert repo.is_merge_in_progress() is False
        (tmp_path / ".git" / "MERGE_HEAD").write_text("abc\n", encoding="utf-8")
        assert repo.is_merge_in_progress() is True

    @patch("subprocess.run")
    def test_git_dir_absolute(self, mock_run: MagicMock, tmp_path: Path) -> None:
        """Worktrees report an absolute git dir."""
        mock_run.return_value = make_completed_process(stdout="/srv/main/.git/worktrees/wt\n")
        assert Repository(tmp_path).git_dir() == Path("/srv/main/.git/worktrees/wt")

    @patch("subprocess.run")
    def test_tag_and_branch_exists(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [
            make_completed_process(stdout="abc\n"),
            make_completed_process(returncode=1),
        ]
        repo = Repository(tmp_path)

        assert repo.tag_exists("v_shop_1.0.0") is True
        assert repo.branch_exists("release_develop_1.0.0") is False
        assert git_args(mock_run, 0) == ["rev-parse", "-q", "--verify", "refs/tags/v_shop_1.0.0"]
        assert git_args(mock_run, 1)[-1] == "refs/heads/release_develop_1.0.0"

    @patch("subprocess.run")
    def test_is_ancestor(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process()

        assert Repository(tmp_path).is_ancestor("master") is True
        assert git_args(mock_run) == ["merge-base", "--is-ancestor", "master", "HEAD"]


class TestRepositoryPrimitives:
    @patch("subprocess.run")
    def test_command_lines(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process()
        repo = Repository(tmp_path)

        expected = [
            (lambda: repo.fetch_prune(), ["fetch", "--prune", "origin"]),
            (lambda: repo.checkout("develop"), ["checkout", "develop"]),
            (lambda: repo.pull("develop"), ["pull", "--ff-only", "origin", "develop"]),
            (lambda: repo.create_branch("rel", "develop"), ["checkout", "-b", "rel", "develop"]),
            (lambda: repo.tag("rb"), ["tag", "rb"]),
            (lambda: repo.tag("v1", message="Release v1"), ["tag", "-a", "v1", "-m", "Release v1"]),
            (lambda: repo.push_tag("v1"), ["push", "origin", "refs/tags/v1"]),
            (lambda: repo.push_branch("rel"), ["push", "origin", "rel"]),
            (
                lambda: repo.push_branch("rel", set_upstream=True),
                ["push", "--set-upstream", "origin", "rel"],
            ),
            (lambda: repo.merge_abort(), ["merge", "--abort"]),
            (lambda: repo.delete_tag("v1"), ["tag", "-d", "v1"]),
            (lambda: repo.delete_remote_tag("v1"), ["push", "origin", "--delete", "refs/tags/v1"]),
            (lambda: repo.delete_branch("rel"), ["branch", "-D", "rel"]),
            (
                lambda: repo.delete_remote_branch("rel"),
                ["push", "origin", "--delete", "refs/heads/rel"],
            ),
        ]
        for call, args in expected:
            assert call() == Ok(None)
            assert git_args(mock_run) == args

    @patch("subprocess.run")
    def test_custom_remote(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process()

        Repository(tmp_path, remote="upstream").push_tag("v1")

        assert git_args(mock_run) == ["push", "upstream", "refs/tags/v1"]

    @patch("subprocess.run")
    def test_network_commands_get_longer_timeout(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process()
        repo = Repository(tmp_path)

        repo.checkout("develop")
        local_timeout = mock_run.call_args.kwargs["timeout"]
        repo.push_branch("develop")
        network_timeout = mock_run.call_args.kwargs["timeout"]

        assert network_timeout > local_timeout

    @patch("subprocess.run")
    def test_git_runs_in_c_locale_without_prompts(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process()

        Repository(tmp_path).fetch_prune()

        env = mock_run.call_args.kwargs["env"]
        assert env["LC_ALL"] == "C"
        assert env["GIT_TERMINAL_PROMPT"] == "0"

    @patch("subprocess.run")
    def test_failure_carries_command_and_stderr(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(
            returncode=128, stderr="fatal: tag 'rb' already exists\n"
        )

        result = Repository(tmp_path).tag("rb")

        assert isinstance(result, Err)
        assert result.error.command == "tag rb"
        assert result.error.message == "fatal: tag 'rb' already exists"
        assert result.error.returncode == 128

    @patch("subprocess.run")
    def test_fetch_branch(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [
            make_completed_process(stdout="develop\n"),  # current branch
            make_completed_process(),
        ]

        result = Repository(tmp_path).fetch_branch("develop-qimacert")

        assert result == Ok(None)
        assert git_args(mock_run) == [
            "fetch",
            "origin",
            "develop-qimacert:develop-qimacert",
            "--recurse-submodules=no",
            "--prune",
        ]

    @patch("subprocess.run")
    def test_fetch_branch_with_submodules(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [make_completed_process(stdout="develop\n"), make_completed_process()]

        Repository(tmp_path).fetch_branch("develop-qimacert", recurse_submodules=True)

        assert "--recurse-submodules=yes" in git_args(mock_run)

    @patch("subprocess.run")
    def test_fetch_branch_refuses_checked_out_branch(
        self, mock_run: MagicMock, tmp_path: Path
    ) -> None:
        mock_run.return_value = make_completed_process(stdout="develop-qimacert\n")

        result = Repository(tmp_path).fetch_branch("develop-qimacert")

        assert isinstance(result, Err)
        assert "checked out branch" in result.error.message
        assert mock_run.call_count == 1


class TestMerge:
    @patch("subprocess.run")
    def test_clean_merge(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(stdout="Merge made by the 'ort' strategy.\n")

        result = Repository(tmp_path).merge("master")

        assert result == Ok(MergeOutcome.CLEAN)
        assert git_args(mock_run) == ["merge", "--no-edit", "master"]

    @patch("subprocess.run")
    def test_conflict_from_output(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(
            returncode=1,
            stdout="CONFLICT (content): Merge conflict in app.py\n"
            "Automatic merge failed; fix conflicts and then commit the result.\n",
        )

        assert Repository(tmp_path).merge("master") == Ok(MergeOutcome.CONFLICTED)

    @patch("subprocess.run")
    def test_conflict_from_unmerged_paths(self, mock_run: MagicMock, tmp_path: Path) -> None:
        """Localized git output has no CONFLICT marker; status still shows it."""
        mock_run.side_effect = [
            make_completed_process(returncode=1, stdout="Konflikt in app.py\n"),
            make_completed_process(stdout="## rel\nUU app.py\n"),
        ]

        assert Repository(tmp_path).merge("master") == Ok(MergeOutcome.CONFLICTED)

    @patch("subprocess.run")
    def test_other_failure_is_error(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = [
            make_completed_process(returncode=1, stderr="merge: nope - not something we can merge\n"),
            make_completed_process(stdout="## rel\n"),
        ]

        result = Repository(tmp_path).merge("nope")

        assert isinstance(result, Err)
        assert result.error.command == "merge nope"
        assert "not something we can merge" in result.error.message


class TestDryRun:
    @patch("subprocess.run")
    def test_mutations_are_echoed_not_run(self, mock_run: MagicMock, tmp_path: Path) -> None:
        console = MockConsole()
        repo = Repository(tmp_path, console=console, dry_run=True)

        assert repo.tag("v_shop_1.0.0", message="Release v_shop_1.0.0") == Ok(None)
        assert repo.push_tag("v_shop_1.0.0") == Ok(None)
        assert repo.merge("master") == Ok(MergeOutcome.CLEAN)

        mock_run.assert_not_called()
        assert console.messages == [
            "git tag -a v_shop_1.0.0 -m Release v_shop_1.0.0",
            "git push origin refs/tags/v_shop_1.0.0",
            "git merge --no-edit master",
        ]
        assert console.count(Style.DIM) == 3

    @patch("subprocess.run")
    def test_queries_still_run(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(stdout="develop\n")

        assert Repository(tmp_path, dry_run=True).current_branch() == "develop"
        assert mock_run.call_count == 1


class TestClone:
    @patch("subprocess.run")
    def test_clone_into_new_directory(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process()
        target = tmp_path / "repos" / "shop"
        console = MockConsole()

        result = clone("https://example.com/shop.git", target, remote="upstream", console=console)

        assert isinstance(result, Ok)
        assert result.value.path == target
        assert result.value.remote == "upstream"
        cmd = mock_run.call_args.args[0]
        assert cmd == ["git", "clone", "--origin", "upstream", "https://example.com/shop.git", str(target)]
        assert mock_run.call_args.kwargs["cwd"] == str(tmp_path / "repos")
        assert (tmp_path / "repos").is_dir()
        assert console.find("git clone --origin upstream")

    @patch("subprocess.run")
    def test_clone_failure(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = make_completed_process(
            returncode=128, stderr="fatal: repository 'https://example.com/nope.git/' not found\n"
        )

        result = clone("https://example.com/nope.git", tmp_path / "nope")

        assert isinstance(result, Err)
        assert result.error.command == "clone https://example.com/nope.git"
        assert "not found" in result.error.message
        assert result.error.returncode == 128
