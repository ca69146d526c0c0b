"""Artifact naming per workflow kind.

Both kinds share one workflow and differ only in the templates below and in
whether the develop ref is fetched explicitly before checkout. Templates are
``str.format`` strings over ``develop``, ``production``, ``develop_slug``,
``production_slug`` (branch name with ``-`` and ``/`` turned into ``_``),
``version`` and ``repo``. A repository may override any template in its
``naming`` config table.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace

from relflow.core.config import ConfigurationError, RepositoryDescriptor, WorkflowKind
from relflow.core.result import Err, Ok, Result
from relflow.release.model import ReleaseNames

_VERSION_RE = re.compile(r"^[0-9A-Za-z][0-9A-Za-z._+-]*$")


@dataclass(frozen=True, slots=True)
class KindProfile:
    kind: WorkflowKind
    rollback_tag: str
    release_branch: str
    version_tag: str
    final_branch: str
    fetch_develop_ref: bool
    recurse_submodules: bool = False


STANDARD_PROFILE = KindProfile(
    kind=WorkflowKind.STANDARD,
    rollback_tag="rollback_{develop}_v{version}",
    release_branch="release_{develop}_{version}",
    version_tag="v_{repo}_{version}",
    final_branch="release_{production}_{version}",
    fetch_develop_ref=False,
)

# Three-branch topology: develop is a sibling branch (e.g. develop-qimacert)
# that may not be tracked locally, hence the explicit fetch.
LEGACY_PROFILE = KindProfile(
    kind=WorkflowKind.LEGACY,
    rollback_tag="rollback_{develop_slug}_v{version}",
    release_branch="release_{develop_slug}_{version}",
    version_tag="v_{repo}_{version}",
    final_branch="release_{production_slug}_{version}",
    fetch_develop_ref=True,
)

PROFILES: dict[WorkflowKind, KindProfile] = {
    WorkflowKind.STANDARD: STANDARD_PROFILE,
    WorkflowKind.LEGACY: LEGACY_PROFILE,
}


def resolve_profile(repo: RepositoryDescriptor) -> KindProfile:
    """Kind defaults with the repository's naming overrides applied."""
    overrides = repo.naming.as_dict()
    return replace(
        PROFILES[repo.branches.kind],
        recurse_submodules=repo.recurse_submodules,
        **overrides,
    )


def slug(branch: str) -> str:
    return branch.replace("-", "_").replace("/", "_")


def compute_names(
    repo: RepositoryDescriptor,
    version: str,
    profile: KindProfile | None = None,
) -> ReleaseNames:
    """Deterministic artifact names for a release of ``repo`` at ``version``."""
    p = profile or resolve_profile(repo)
    values = {
        "develop": repo.branches.develop,
        "production": repo.branches.production,
        "develop_slug": slug(repo.branches.develop),
        "production_slug": slug(repo.branches.production),
        "version": version,
        "repo": repo.name,
    }
    return ReleaseNames(
        rollback_tag=p.rollback_tag.format(**values),
        release_branch=p.release_branch.format(**values),
        version_tag=p.version_tag.format(**values),
        final_branch=p.final_branch.format(**values),
    )


def validate_version(version: str) -> Result[str, ConfigurationError]:
    v = version.strip()
    if not v:
        return Err(ConfigurationError("version is required", hint='e.g. "2.02" or "1.0.0"'))
    if not _VERSION_RE.match(v) or ".." in v or v.endswith(".lock"):
        return Err(
            ConfigurationError(
                f"invalid version: {version!r}",
                hint="use letters, digits, '.', '_', '+' or '-'",
            )
        )
    return Ok(v)


def validate_names(names: ReleaseNames) -> Result[ReleaseNames, ConfigurationError]:
    """Reject names git would refuse, and collisions between artifacts."""
    branches = (names.release_branch, names.final_branch)
    tags = (names.rollback_tag, names.version_tag)
    for name in (*tags, *branches):
        if not _is_valid_ref_name(name):
            return Err(ConfigurationError(f"invalid git ref name: {name!r}"))
    if names.release_branch == names.final_branch:
        return Err(
            ConfigurationError(
                f"release branch and final release branch are both '{names.release_branch}'",
                hint="adjust naming.final_branch for this repository",
            )
        )
    if names.rollback_tag == names.version_tag:
        return Err(ConfigurationError(f"rollback tag and version tag are both '{names.version_tag}'"))
    return Ok(names)


def _is_valid_ref_name(name: str) -> bool:
    if not name or name.startswith(("-", "/", ".")) or name.endswith(("/", ".", ".lock")):
        return False
    if ".." in name or "@{" in name or "//" in name:
        return False
    return not any(c in name for c in " ~^:?*[\\") and all(ord(c) >= 32 for c in name)
