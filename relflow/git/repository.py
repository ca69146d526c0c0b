"""Git repository adapter.

``Repository`` wraps the git primitives the release workflow needs (fetch,
checkout, pull, branch, tag, push, merge) plus the read-only introspection
used for conflict detection. Every operation runs ``git -C <path> ...`` and
returns a Result; nothing raises.

Usage:
    repo = Repository(Path("/path/to/repo"), console=console)

    match repo.merge("master"):
        case Ok(MergeOutcome.CLEAN):
            ...
        case Ok(MergeOutcome.CONFLICTED):
            print(repo.status().unwrap().conflicted)
        case Err(e):
            print(f"merge failed: {e.message}")

With ``dry_run=True`` mutating commands are only echoed; read-only queries
still run so branch guards and status checks stay meaningful.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from relflow.core.result import Err, Ok, Result
from relflow.output.console import ConsoleProtocol, Style
from relflow.platform.process import ProcessError
from relflow.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "clone"})
# English messages for CONFLICT detection; never block on a credential prompt
_GIT_ENV = {"LC_ALL": "C", "GIT_TERMINAL_PROMPT": "0"}

# Porcelain v1 XY codes for paths that still need conflict resolution
UNMERGED_CODES = frozenset({"DD", "AU", "UD", "UA", "DU", "AA", "UU"})

__all__ = [
    "GitError",
    "GitStatus",
    "MergeOutcome",
    "Repository",
    "StatusEntry",
    "UNMERGED_CODES",
    "clone",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed (e.g. "push origin v1")
        message: Error text, usually git's stderr
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


class MergeOutcome(Enum):
    """Result of a merge attempt that did not hit an unexpected error."""

    CLEAN = "clean"
    CONFLICTED = "conflicted"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """A single entry in ``git status --porcelain``.

    Attributes:
        xy: Two-character status code (e.g. "M ", "UU", "??")
        path: File path
    """

    xy: str
    path: str

    @property
    def is_unmerged(self) -> bool:
        """True for both-modified, both-added, both-deleted and friends."""
        return self.xy in UNMERGED_CODES

    @property
    def is_untracked(self) -> bool:
        return self.xy == "??"

    def pretty_xy(self) -> str:
        """Format XY with dots for spaces (". M" instead of " M")."""
        return self.xy.replace(" ", ".")


@dataclass(frozen=True, slots=True)
class GitStatus:
    """Parsed ``git status --porcelain=v1 -b``.

    Attributes:
        branch: Current branch name ("HEAD (no branch)" when detached)
        upstream: Upstream branch (e.g. "origin/develop"), None if not set
        ahead: Commits ahead of upstream
        behind: Commits behind upstream
        entries: All status entries
    """

    branch: str
    upstream: str | None = None
    ahead: int = 0
    behind: int = 0
    entries: tuple[StatusEntry, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        return len(self.entries) == 0

    @property
    def conflicted(self) -> list[str]:
        """Paths that are still unmerged."""
        return [e.path for e in self.entries if e.is_unmerged]

    @property
    def has_conflicts(self) -> bool:
        return any(e.is_unmerged for e in self.entries)


class Repository:
    """Git operations bound to one working directory.

    Attributes:
        path: Path to the working tree root
        remote: Remote used for fetch/pull/push
        dry_run: Echo mutating commands instead of running them
    """

    def __init__(
        self,
        path: Path,
        *,
        remote: str = "origin",
        console: ConsoleProtocol | None = None,
        dry_run: bool = False,
    ) -> None:
        self.path = path
        self.remote = remote
        self.dry_run = dry_run
        self._console = console

    def exists(self) -> bool:
        """Check if this is a git working tree (.git dir or worktree file)."""
        return (self.path / ".git").exists()

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    def current_branch(self) -> str | None:
        """Get current branch name.

        Returns None on detached HEAD or error.
        """
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def status(self) -> Result[GitStatus, GitError]:
        """Run ``git status --porcelain=v1 -b`` and parse it."""
        result = self._run(["status", "--porcelain=v1", "-b"])
        match result:
            case Err(e):
                return Err(_git_error("status", e))
            case Ok(stdout):
                return Ok(self._parse_status(stdout))

    def status_porcelain(self) -> Result[tuple[StatusEntry, ...], GitError]:
        """Status entries only, without the branch header."""
        return self.status().map(lambda s: s.entries)

    def git_dir(self) -> Path:
        """Location of the repository metadata directory."""
        result = self._run(["rev-parse", "--git-dir"])
        if isinstance(result, Ok) and result.value.strip():
            p = Path(result.value.strip())
            return p if p.is_absolute() else self.path / p
        return self.path / ".git"

    def is_merge_in_progress(self) -> bool:
        """True while a MERGE_HEAD marker exists (unfinished merge)."""
        return (self.git_dir() / "MERGE_HEAD").exists()

    def is_ancestor(self, ref: str, of: str = "HEAD") -> bool:
        """True if ``ref`` is reachable from ``of`` (i.e. already merged)."""
        return isinstance(self._run(["merge-base", "--is-ancestor", ref, of]), Ok)

    def tag_exists(self, name: str) -> bool:
        return isinstance(self._run(["rev-parse", "-q", "--verify", f"refs/tags/{name}"]), Ok)

    def branch_exists(self, name: str) -> bool:
        return isinstance(self._run(["rev-parse", "-q", "--verify", f"refs/heads/{name}"]), Ok)

    # -------------------------------------------------------------------------
    # Primitives used by the release workflow
    # -------------------------------------------------------------------------

    def fetch_prune(self) -> Result[None, GitError]:
        return self._mutate(["fetch", "--prune", self.remote])

    def fetch_branch(self, name: str, *, recurse_submodules: bool = False) -> Result[None, GitError]:
        """Fetch ``remote/name`` straight into the local ``name`` ref.

        git refuses to update the ref of the checked-out branch, so this
        returns an error up front in that case.
        """
        if self.current_branch() == name:
            return Err(
                GitError(
                    command=f"fetch {self.remote} {name}:{name}",
                    message=f"cannot fetch into '{name}': it is the checked out branch",
                )
            )
        submodules = "--recurse-submodules=yes" if recurse_submodules else "--recurse-submodules=no"
        return self._mutate(["fetch", self.remote, f"{name}:{name}", submodules, "--prune"])

    def checkout(self, branch: str) -> Result[None, GitError]:
        return self._mutate(["checkout", branch])

    def pull(self, branch: str) -> Result[None, GitError]:
        return self._mutate(["pull", "--ff-only", self.remote, branch])

    def create_branch(self, name: str, from_ref: str | None = None) -> Result[None, GitError]:
        """Create ``name`` (from ``from_ref`` or HEAD) and switch to it."""
        cmd = ["checkout", "-b", name]
        if from_ref is not None:
            cmd.append(from_ref)
        return self._mutate(cmd)

    def tag(self, name: str, *, message: str | None = None) -> Result[None, GitError]:
        """Tag HEAD. Annotated when a message is given, lightweight otherwise."""
        if message is None:
            return self._mutate(["tag", name])
        return self._mutate(["tag", "-a", name, "-m", message])

    def push_tag(self, name: str) -> Result[None, GitError]:
        return self._mutate(["push", self.remote, f"refs/tags/{name}"])

    def push_branch(self, name: str, *, set_upstream: bool = False) -> Result[None, GitError]:
        if set_upstream:
            return self._mutate(["push", "--set-upstream", self.remote, name])
        return self._mutate(["push", self.remote, name])

    def merge(self, source: str) -> Result[MergeOutcome, GitError]:
        """Merge ``source`` into the current branch.

        A conflict is a normal outcome (Ok(CONFLICTED)), not an error. Only
        failures that leave no merge to resolve (unknown ref, dirty tree that
        would be overwritten) are returned as Err.
        """
        cmd = ["merge", "--no-edit", source]
        self._echo(cmd)
        if self.dry_run:
            return Ok(MergeOutcome.CLEAN)

        result = self._run(cmd)
        if isinstance(result, Ok):
            return Ok(MergeOutcome.CLEAN)

        e = result.error
        if "CONFLICT" in e.output or self._has_unmerged_paths():
            return Ok(MergeOutcome.CONFLICTED)
        return Err(_git_error(f"merge {source}", e))

    def merge_abort(self) -> Result[None, GitError]:
        return self._mutate(["merge", "--abort"])

    # -------------------------------------------------------------------------
    # Deletions (rollback)
    # -------------------------------------------------------------------------

    def delete_tag(self, name: str) -> Result[None, GitError]:
        return self._mutate(["tag", "-d", name])

    def delete_remote_tag(self, name: str) -> Result[None, GitError]:
        return self._mutate(["push", self.remote, "--delete", f"refs/tags/{name}"])

    def delete_branch(self, name: str) -> Result[None, GitError]:
        return self._mutate(["branch", "-D", name])

    def delete_remote_branch(self, name: str) -> Result[None, GitError]:
        return self._mutate(["push", self.remote, "--delete", f"refs/heads/{name}"])

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _has_unmerged_paths(self) -> bool:
        status = self.status()
        return isinstance(status, Ok) and status.value.has_conflicts

    def _echo(self, args: list[str]) -> None:
        if self._console is not None:
            self._console.print(f"git {' '.join(args)}", Style.DIM)

    def _mutate(self, args: list[str]) -> Result[None, GitError]:
        """Run a state-changing command (skipped in dry-run mode)."""
        self._echo(args)
        if self.dry_run:
            return Ok(None)
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(" ".join(args[:4]), result.error))
        return Ok(None)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        command = args[0] if args else ""
        timeout = _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        return run_process(
            ["git", "-C", str(self.path), *args],
            cwd=self.path,
            env_overrides=_GIT_ENV,
            timeout=timeout,
        )

    def _parse_status(self, output: str) -> GitStatus:
        lines = [ln for ln in output.splitlines() if ln.strip()]
        if not lines:
            return GitStatus(branch="")

        if not lines[0].startswith("##"):
            return GitStatus(branch="", entries=_parse_entries(lines))

        branch, upstream = _parse_branch_line(lines[0])
        ahead, behind = _parse_ahead_behind(lines[0])
        return GitStatus(
            branch=branch,
            upstream=upstream,
            ahead=ahead,
            behind=behind,
            entries=_parse_entries(lines[1:]),
        )


def clone(
    url: str,
    path: Path,
    *,
    remote: str = "origin",
    console: ConsoleProtocol | None = None,
) -> Result[Repository, GitError]:
    """Clone ``url`` into ``path``, naming the remote ``remote``.

    Missing parent directories are created; ``path`` itself must not exist
    (git refuses a non-empty target).
    """
    args = ["clone", "--origin", remote, url, str(path)]
    if console is not None:
        console.print(f"git {' '.join(args)}", Style.DIM)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return Err(GitError(command=f"clone {url}", message=str(e)))

    result = run_process(
        ["git", *args],
        cwd=path.parent,
        env_overrides=_GIT_ENV,
        timeout=_GIT_NETWORK_TIMEOUT_SECONDS,
    )
    if isinstance(result, Err):
        return Err(_git_error(f"clone {url}", result.error))
    return Ok(Repository(path, remote=remote, console=console))


def _git_error(command: str, e: ProcessError) -> GitError:
    return GitError(command=command, message=e.detail(), returncode=e.returncode)


def _parse_branch_line(line: str) -> tuple[str, str | None]:
    """Parse ``## branch...upstream [info]``."""
    s = line.strip()[2:].lstrip()
    s = s.split(" [", 1)[0].strip()
    if s.startswith("No commits yet on "):
        s = s.removeprefix("No commits yet on ")
    if "..." in s:
        left, right = s.split("...", 1)
        return (left.strip(), right.strip())
    return (s, None)


def _parse_ahead_behind(line: str) -> tuple[int, int]:
    match = re.search(r"\[([^\]]+)\]", line)
    if not match:
        return (0, 0)
    inside = match.group(1)
    ahead = re.search(r"ahead\s+(\d+)", inside)
    behind = re.search(r"behind\s+(\d+)", inside)
    return (
        int(ahead.group(1)) if ahead else 0,
        int(behind.group(1)) if behind else 0,
    )


def _parse_entries(lines: list[str]) -> tuple[StatusEntry, ...]:
    entries: list[StatusEntry] = []
    for line in lines:
        if len(line) < 4:
            continue
        entries.append(StatusEntry(xy=line[:2], path=line[3:]))
    return tuple(entries)
