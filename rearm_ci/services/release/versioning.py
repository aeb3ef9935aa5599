"""Version resolution and PENDING release creation.

Exactly one source decides the version: the caller's explicit version, or
the registry's ``getversion`` reply. Both paths record a PENDING release.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from rearm_ci.core.json_fragment import find_json_object
from rearm_ci.core.result import Err, Ok, Result
from rearm_ci.core.structured import get_str
from rearm_ci.git.repository import Repository
from rearm_ci.output.console import ConsoleProtocol
from rearm_ci.services.release.errors import ReleaseError
from rearm_ci.services.release.history import collect_commit_history
from rearm_ci.services.release.model import ComponentOptions, ResolvedVersion
from rearm_ci.services.release.registry import CommitDetails, RegistryClient

__all__ = ["VersionRequest", "parse_version_reply", "resolve_version"]


@dataclass(frozen=True, slots=True)
class VersionRequest:
    commit: str
    branch: str
    vcs_uri: str
    explicit_version: str | None = None
    last_commit: str | None = None
    component: ComponentOptions = field(default_factory=ComponentOptions)


def parse_version_reply(output: str) -> Result[ResolvedVersion, ReleaseError]:
    """Read ``{"version": ..., "dockerTagSafeVersion": ...}`` out of CLI output."""
    match find_json_object(output, "version"):
        case Err(e):
            return Err(
                ReleaseError(
                    kind="registry_reply_invalid",
                    message="could not read the version from getversion output",
                    hint=e.message,
                )
            )
        case Ok(obj):
            full = get_str(obj, "version")
            if full is None:
                return Err(
                    ReleaseError(
                        kind="registry_reply_invalid",
                        message="getversion reply has no version",
                    )
                )
            short = get_str(obj, "dockerTagSafeVersion") or full
            return Ok(ResolvedVersion(full=full, short=short))


def resolve_version(
    request: VersionRequest,
    *,
    repo: Repository,
    registry: RegistryClient,
    console: ConsoleProtocol,
) -> Result[ResolvedVersion, ReleaseError]:
    meta = repo.head_commit_meta()
    if isinstance(meta, Err):
        return Err(
            ReleaseError(
                kind="vcs_failed",
                message="could not read the commit message and date",
                hint=meta.error.message,
            )
        )

    history = collect_commit_history(
        repo=repo,
        last_commit=request.last_commit,
        commit=request.commit,
        console=console,
    )
    details = CommitDetails(
        commit=request.commit,
        branch=request.branch,
        vcs_uri=request.vcs_uri,
        message=meta.value.subject or None,
        date=meta.value.date or None,
        commits_b64=history.encode(),
    )

    explicit = (request.explicit_version or "").strip()
    if explicit:
        console.info(f"Creating PENDING release {explicit}")
        added = registry.add_pending_release(details, explicit, request.component)
        if isinstance(added, Err):
            return added
        return Ok(ResolvedVersion(full=explicit, short=explicit))

    console.info("Requesting a version from the registry")
    reply = registry.get_version(details, request.component)
    if isinstance(reply, Err):
        return reply
    return parse_version_reply(reply.value)
