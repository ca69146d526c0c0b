"""Repository configuration store.

The store is a YAML file listing the repositories relflow can release, plus
a default version tag and default branch pair:

    default_tag: 1.0.0
    default_branches:
      develop: develop
      production: master
      kind: standard
    repositories:
      - name: shop
        path: ./shop
        branches: {develop: develop, production: master, kind: standard}
      - name: qimacert
        path: ./qimacert
        branches: {develop: develop-qimacert, production: develop, kind: legacy}
        naming:
          version_tag: "v_qimacert_{version}"

Keys written by older releases of the tool (``baseBranches``, ``type``,
``defaultTag``, ``defaultBaseBranches``, ``lastUsed``) are still read.
Relative repository paths are resolved against the config file directory.
"""

from __future__ import annotations

import os
import string
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Literal

import yaml

from .result import Err, Ok, Result
from .structured import StrDict, as_mapping, first, get_flag, get_list, get_str, get_table

__all__ = [
    "BranchPair",
    "ConfigStore",
    "ConfigurationError",
    "DEFAULT_CONFIG_NAME",
    "NamingTemplates",
    "RepositoryDescriptor",
    "TEMPLATE_FIELDS",
    "WorkflowKind",
    "default_config_path",
    "load_store",
    "parse_kind",
    "validate_descriptor",
]

DEFAULT_CONFIG_NAME = "relflow.yml"
DEFAULT_TAG = "1.0.0"

# Placeholders allowed in naming templates
TEMPLATE_FIELDS = frozenset(
    {"develop", "production", "develop_slug", "production_slug", "version", "repo"}
)


@dataclass(frozen=True, slots=True)
class ConfigurationError:
    """Malformed or missing configuration; reported before any git command."""

    message: str
    path: Path | None = None
    hint: str | None = None
    kind: Literal["configuration"] = "configuration"


class WorkflowKind(Enum):
    """Branch topology variant of a repository."""

    STANDARD = "standard"
    LEGACY = "legacy"

    def __str__(self) -> str:
        return self.value


_KIND_ALIASES = {
    "standard": WorkflowKind.STANDARD,
    "legacy": WorkflowKind.LEGACY,
    "custom": WorkflowKind.LEGACY,
    "qimacert": WorkflowKind.LEGACY,
}


def parse_kind(value: str) -> WorkflowKind | None:
    return _KIND_ALIASES.get(value.strip().lower())


@dataclass(frozen=True, slots=True)
class BranchPair:
    """Source branch of a release (develop) and the branch merged into it."""

    develop: str = "develop"
    production: str = "master"
    kind: WorkflowKind = WorkflowKind.STANDARD


@dataclass(frozen=True, slots=True)
class NamingTemplates:
    """Per-repository overrides of the kind's naming templates.

    None means "use the workflow kind's default".
    """

    rollback_tag: str | None = None
    release_branch: str | None = None
    version_tag: str | None = None
    final_branch: str | None = None

    def as_dict(self) -> dict[str, str]:
        out: dict[str, str] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                out[f.name] = value
        return out


@dataclass(frozen=True, slots=True)
class RepositoryDescriptor:
    """One git working directory and its release topology."""

    name: str
    path: Path
    branches: BranchPair = field(default_factory=BranchPair)
    remote: str = "origin"
    remote_url: str | None = None
    naming: NamingTemplates = field(default_factory=NamingTemplates)
    recurse_submodules: bool = False
    last_used: datetime | None = None


def default_config_path() -> Path:
    env = os.environ.get("RELFLOW_CONFIG")
    if env:
        return Path(env).expanduser()
    return Path.cwd() / DEFAULT_CONFIG_NAME


@dataclass(slots=True)
class ConfigStore:
    """In-memory view of the configuration file."""

    path: Path
    repositories: list[RepositoryDescriptor] = field(default_factory=list)
    default_tag: str = DEFAULT_TAG
    default_branches: BranchPair = field(default_factory=BranchPair)

    def list_repositories(self) -> tuple[RepositoryDescriptor, ...]:
        return tuple(self.repositories)

    def get_repository(self, name: str) -> Result[RepositoryDescriptor, ConfigurationError]:
        for repo in self.repositories:
            if repo.name == name:
                return Ok(repo)
        known = ", ".join(r.name for r in self.repositories) or "none configured"
        return Err(
            ConfigurationError(
                message=f"unknown repository: {name}",
                path=self.path,
                hint=f"known repositories: {known}",
            )
        )

    def add_repository(self, repo: RepositoryDescriptor) -> RepositoryDescriptor:
        """Insert or replace (by name), stamping ``last_used``."""
        stamped = replace(repo, last_used=_now())
        for i, existing in enumerate(self.repositories):
            if existing.name == repo.name:
                self.repositories[i] = stamped
                return stamped
        self.repositories.append(stamped)
        return stamped

    def remove_repository(self, name: str) -> bool:
        before = len(self.repositories)
        self.repositories = [r for r in self.repositories if r.name != name]
        return len(self.repositories) < before

    def touch(self, name: str) -> None:
        for i, repo in enumerate(self.repositories):
            if repo.name == name:
                self.repositories[i] = replace(repo, last_used=_now())

    def to_dict(self) -> StrDict:
        return {
            "default_tag": self.default_tag,
            "default_branches": _branches_to_dict(self.default_branches),
            "repositories": [self._repo_to_dict(r) for r in self.repositories],
        }

    def save(self) -> Result[None, ConfigurationError]:
        content = yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)
        try:
            _atomic_write_text(self.path, content)
        except OSError as e:
            return Err(ConfigurationError(f"failed to write config: {e}", path=self.path))
        return Ok(None)

    def init_sample(self) -> None:
        """Replace repositories with one standard and one legacy example."""
        self.repositories = []
        self.add_repository(
            RepositoryDescriptor(
                name="qimacert",
                path=self.path.parent / "qimacert",
                branches=BranchPair(
                    develop="develop-qimacert",
                    production="develop",
                    kind=WorkflowKind.LEGACY,
                ),
            )
        )
        self.add_repository(
            RepositoryDescriptor(
                name="standard-project",
                path=self.path.parent / "standard-project",
                branches=BranchPair(),
            )
        )

    def _repo_to_dict(self, repo: RepositoryDescriptor) -> StrDict:
        out: StrDict = {
            "name": repo.name,
            "path": _relative_path(repo.path, self.path.parent),
            "branches": _branches_to_dict(repo.branches),
        }
        if repo.remote != "origin":
            out["remote"] = repo.remote
        if repo.remote_url:
            out["url"] = repo.remote_url
        naming = repo.naming.as_dict()
        if naming:
            out["naming"] = naming
        if repo.recurse_submodules:
            out["recurse_submodules"] = True
        if repo.last_used is not None:
            out["last_used"] = repo.last_used.isoformat(timespec="seconds")
        return out


def load_store(path: Path) -> Result[ConfigStore, ConfigurationError]:
    """Load the configuration file.

    A missing file yields an empty store bound to ``path`` (call ``save`` to
    create it). Unreadable YAML or an invalid repository entry is an error.
    """
    if not path.exists():
        return Ok(ConfigStore(path=path))

    try:
        data_obj: object = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        return Err(ConfigurationError(f"cannot read config: {e}", path=path))
    except yaml.YAMLError as e:
        return Err(ConfigurationError(f"invalid YAML: {e}", path=path))

    if data_obj is None:
        return Ok(ConfigStore(path=path))
    data = as_mapping(data_obj)
    if data is None:
        return Err(ConfigurationError("config root must be a mapping", path=path))

    base_dir = path.parent
    default_branches = BranchPair()
    branches_table = get_table(data, "default_branches", "defaultBaseBranches")
    if branches_table is not None:
        parsed = _parse_branches(branches_table, fallback=BranchPair())
        if isinstance(parsed, Err):
            return Err(replace(parsed.error, path=path))
        default_branches = parsed.value

    repositories: list[RepositoryDescriptor] = []
    raw_repos = data.get("repositories")
    if raw_repos is not None and get_list(data, "repositories") is None:
        return Err(ConfigurationError("'repositories' must be a list", path=path))
    for index, item in enumerate(get_list(data, "repositories") or []):
        table = as_mapping(item)
        if table is None:
            return Err(ConfigurationError(f"repositories[{index}] must be a mapping", path=path))
        parsed_repo = _parse_repository(table, base_dir=base_dir, default_branches=default_branches)
        if isinstance(parsed_repo, Err):
            e = parsed_repo.error
            return Err(replace(e, message=f"repositories[{index}]: {e.message}", path=path))
        if any(r.name == parsed_repo.value.name for r in repositories):
            return Err(
                ConfigurationError(
                    f"duplicate repository name: {parsed_repo.value.name}", path=path
                )
            )
        repositories.append(parsed_repo.value)

    return Ok(
        ConfigStore(
            path=path,
            repositories=repositories,
            default_tag=get_str(data, "default_tag", "defaultTag") or DEFAULT_TAG,
            default_branches=default_branches,
        )
    )


def validate_descriptor(repo: RepositoryDescriptor) -> Result[RepositoryDescriptor, ConfigurationError]:
    """Check invariants a release relies on."""
    if not repo.name.strip():
        return Err(ConfigurationError("repository name is empty"))
    if not repo.branches.develop or not repo.branches.production:
        return Err(ConfigurationError(f"{repo.name}: develop and production branches are required"))
    if repo.branches.develop == repo.branches.production:
        return Err(
            ConfigurationError(
                f"{repo.name}: develop and production branches must differ "
                f"(both are '{repo.branches.develop}')"
            )
        )
    for key, template in repo.naming.as_dict().items():
        problem = _template_problem(template)
        if problem is not None:
            return Err(ConfigurationError(f"{repo.name}: naming.{key}: {problem}"))
    return Ok(repo)


def _parse_repository(
    table: Mapping[str, object],
    *,
    base_dir: Path,
    default_branches: BranchPair,
) -> Result[RepositoryDescriptor, ConfigurationError]:
    name = get_str(table, "name")
    if name is None:
        return Err(ConfigurationError("missing 'name'"))
    raw_path = get_str(table, "path")
    if raw_path is None:
        return Err(ConfigurationError(f"{name}: missing 'path'"))

    branches = default_branches
    branches_table = get_table(table, "branches", "baseBranches")
    if branches_table is not None:
        parsed = _parse_branches(branches_table, fallback=default_branches)
        if isinstance(parsed, Err):
            return Err(replace(parsed.error, message=f"{name}: {parsed.error.message}"))
        branches = parsed.value

    naming = NamingTemplates()
    naming_table = get_table(table, "naming")
    if naming_table is not None:
        unknown = sorted(set(naming_table) - {f.name for f in fields(NamingTemplates)})
        if unknown:
            return Err(ConfigurationError(f"{name}: unknown naming keys: {', '.join(unknown)}"))
        naming = NamingTemplates(
            rollback_tag=get_str(naming_table, "rollback_tag"),
            release_branch=get_str(naming_table, "release_branch"),
            version_tag=get_str(naming_table, "version_tag"),
            final_branch=get_str(naming_table, "final_branch"),
        )

    last_used: datetime | None = None
    raw_last_used = first(table, "last_used", "lastUsed")
    if isinstance(raw_last_used, datetime):
        last_used = raw_last_used
    elif isinstance(raw_last_used, str):
        try:
            last_used = datetime.fromisoformat(raw_last_used)
        except ValueError:
            last_used = None

    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = base_dir / path

    return validate_descriptor(
        RepositoryDescriptor(
            name=name,
            path=path,
            branches=branches,
            remote=get_str(table, "remote") or "origin",
            remote_url=get_str(table, "url"),
            naming=naming,
            recurse_submodules=get_flag(table, "recurse_submodules", "recurseSubmodules"),
            last_used=last_used,
        )
    )


def _parse_branches(
    table: Mapping[str, object], *, fallback: BranchPair
) -> Result[BranchPair, ConfigurationError]:
    kind = fallback.kind
    raw_kind = get_str(table, "kind", "type")
    if raw_kind is not None:
        parsed = parse_kind(raw_kind)
        if parsed is None:
            return Err(
                ConfigurationError(
                    f"unknown workflow kind: {raw_kind}",
                    hint="expected 'standard' or 'legacy'",
                )
            )
        kind = parsed
    return Ok(
        BranchPair(
            develop=get_str(table, "develop") or fallback.develop,
            production=get_str(table, "production") or fallback.production,
            kind=kind,
        )
    )


def _template_problem(template: str) -> str | None:
    try:
        parsed = list(string.Formatter().parse(template))
    except ValueError as e:
        return str(e)
    names = {name for _, name, _, _ in parsed if name is not None}
    unknown = sorted(n for n in names if n not in TEMPLATE_FIELDS)
    if unknown or "" in names:
        return f"unknown placeholder(s): {', '.join(unknown) or '{}'}"
    if "version" not in names:
        return "template must contain {version}"
    return None


def _branches_to_dict(branches: BranchPair) -> StrDict:
    return {
        "develop": branches.develop,
        "production": branches.production,
        "kind": branches.kind.value,
    }


def _relative_path(path: Path, base: Path) -> str:
    try:
        return f"./{path.relative_to(base).as_posix()}"
    except ValueError:
        return str(path)


def _now() -> datetime:
    return datetime.now(tz=UTC).replace(microsecond=0)


def _atomic_write_text(path: Path, content: str) -> None:
    """Write via a temp file in the same directory + replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    finally:
        tmp_path.unlink(missing_ok=True)
