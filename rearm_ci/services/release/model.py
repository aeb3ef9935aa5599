from __future__ import annotations

import base64
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from rearm_ci.git.repository import Commit


class Lifecycle(Enum):
    """Release lifecycle as recorded by the registry."""

    PENDING = "PENDING"
    ASSEMBLED = "ASSEMBLED"
    REJECTED = "REJECTED"
    FINALIZED = "FINALIZED"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> Lifecycle | None:
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None

    def can_transition_to(self, target: Lifecycle) -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS: dict[Lifecycle, frozenset[Lifecycle]] = {
    Lifecycle.PENDING: frozenset({Lifecycle.ASSEMBLED, Lifecycle.REJECTED}),
    Lifecycle.ASSEMBLED: frozenset({Lifecycle.FINALIZED}),
    Lifecycle.REJECTED: frozenset(),
    Lifecycle.FINALIZED: frozenset(),
}


@dataclass(frozen=True, slots=True)
class BuildDecision:
    do_build: bool
    # "" means no usable prior release.
    last_commit: str = ""


@dataclass(frozen=True, slots=True)
class ResolvedVersion:
    full: str
    short: str


@dataclass(frozen=True, slots=True)
class CommitHistory:
    """Commits since the prior release, oldest-or-newest as git emitted them."""

    commits: tuple[Commit, ...] = ()

    @classmethod
    def of(cls, commits: Iterable[Commit]) -> CommitHistory:
        return cls(commits=tuple(commits))

    def __bool__(self) -> bool:
        return bool(self.commits)

    def __len__(self) -> int:
        return len(self.commits)

    def encode(self) -> str | None:
        """Base64 of newline-joined records, None when there is nothing to send."""
        if not self.commits:
            return None
        text = "\n".join(c.to_record() for c in self.commits) + "\n"
        return base64.b64encode(text.encode("utf-8")).decode("ascii")


@dataclass(frozen=True, slots=True)
class ComponentOptions:
    """Flags that let the registry create the component on first release."""

    create_component: bool = False
    version_schema: str = "semver"
    feature_branch_version_schema: str | None = None
    allow_rebuild: bool = False


@dataclass(frozen=True, slots=True)
class Deliverable:
    """Build output descriptor attached to a release (``--odel*`` flags)."""

    id: str
    type: str | None = None
    digests: str | None = None
    purl: str | None = None
    build_id: str | None = None
    build_uri: str | None = None
    ci_meta: str | None = None
    artifacts_json: str | None = None

    def flags(self) -> list[tuple[str, str]]:
        out: list[tuple[str, str]] = [("--odelid", self.id)]
        optional = (
            ("--odeltype", self.type),
            ("--odeldigests", self.digests),
            ("--odelidentifiers", f"PURL:{self.purl}" if self.purl else None),
            ("--odelbuildid", self.build_id),
            ("--odelbuilduri", self.build_uri),
            ("--odelcimeta", self.ci_meta),
            ("--odelartsjson", self.artifacts_json),
        )
        out.extend((flag, value) for flag, value in optional if value)
        return out


@dataclass(frozen=True, slots=True)
class ReleaseArtifacts:
    """Opaque descriptor blobs passed through to the registry unmodified."""

    source_artifacts: str | None = None
    release_artifacts: str | None = None


@dataclass(frozen=True, slots=True)
class ReleaseSubmission:
    """Everything ``addrelease`` receives when a build finishes."""

    commit: str
    branch: str
    version: str
    vcs_uri: str
    lifecycle: Lifecycle
    commit_message: str | None = None
    commit_date: str | None = None
    history: CommitHistory = field(default_factory=CommitHistory)
    deliverable: Deliverable | None = None
    artifacts: ReleaseArtifacts = field(default_factory=ReleaseArtifacts)
    date_start: str | None = None
    date_end: str | None = None
