from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum


class Artifact(Enum):
    """Things a release run creates, in creation order."""

    ROLLBACK_TAG = "rollback_tag"
    RELEASE_BRANCH = "release_branch"
    VERSION_TAG = "version_tag"
    FINAL_BRANCH = "final_branch"

    @property
    def is_tag(self) -> bool:
        return self in (Artifact.ROLLBACK_TAG, Artifact.VERSION_TAG)

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


@dataclass(frozen=True, slots=True)
class ReleaseNames:
    """Names of the four artifacts of a release."""

    rollback_tag: str
    release_branch: str
    version_tag: str
    final_branch: str

    def name_of(self, artifact: Artifact) -> str:
        return getattr(self, artifact.value)


@dataclass(slots=True)
class WorkflowArtifacts:
    """What the current run has created locally and pushed.

    A ``*_pushed`` flag is only ever true together with its ``*_created``
    flag; ``mark_pushed`` enforces it.
    """

    rollback_tag_created: bool = False
    rollback_tag_pushed: bool = False
    release_branch_created: bool = False
    release_branch_pushed: bool = False
    version_tag_created: bool = False
    version_tag_pushed: bool = False
    final_branch_created: bool = False
    final_branch_pushed: bool = False

    def __post_init__(self) -> None:
        for artifact in Artifact:
            if self.is_pushed(artifact) and not self.is_created(artifact):
                raise ValueError(f"{artifact.label} marked pushed but not created")

    @classmethod
    def everything(cls) -> WorkflowArtifacts:
        """All flags set; used for an operator-requested rollback."""
        return cls(**{f.name: True for f in fields(cls)})

    def is_created(self, artifact: Artifact) -> bool:
        return bool(getattr(self, f"{artifact.value}_created"))

    def is_pushed(self, artifact: Artifact) -> bool:
        return bool(getattr(self, f"{artifact.value}_pushed"))

    def mark_created(self, artifact: Artifact) -> None:
        setattr(self, f"{artifact.value}_created", True)

    def mark_pushed(self, artifact: Artifact) -> None:
        if not self.is_created(artifact):
            raise ValueError(f"cannot mark {artifact.label} pushed before it is created")
        setattr(self, f"{artifact.value}_pushed", True)

    @property
    def any_created(self) -> bool:
        return any(self.is_created(a) for a in Artifact)
