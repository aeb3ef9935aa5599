"""Branch synchronization: tell the registry which branches are still alive."""

from __future__ import annotations

import base64
import re
from collections.abc import Iterable
from dataclasses import dataclass

from rearm_ci.core.result import Err, Ok, Result
from rearm_ci.git.repository import GitError, Repository
from rearm_ci.output.console import ConsoleProtocol
from rearm_ci.services.release.errors import ReleaseError
from rearm_ci.services.release.registry import RegistryClient

__all__ = [
    "BranchSyncOutcome",
    "encode_branch_list",
    "filter_branch_refs",
    "is_detached_hash_ref",
    "sync_branches",
]

_HASH_RE = re.compile(r"^[0-9a-fA-F]{40}$")
_REMOTE_PREFIX_RE = re.compile(r"^refs/remotes/[^/]+/")

FULL_CHECKOUT_HINT = "use a full checkout (fetchDepth: 0) so remote branches are available"


@dataclass(frozen=True, slots=True)
class BranchSyncOutcome:
    synced: bool
    branches: tuple[str, ...] = ()
    reason: str | None = None


def _branch_suffix(ref: str) -> str:
    if ref.startswith("refs/remotes/"):
        return _REMOTE_PREFIX_RE.sub("", ref, count=1)
    if ref.startswith("refs/heads/"):
        return ref[len("refs/heads/") :]
    _, sep, rest = ref.partition("/")
    return rest if sep else ref


def is_detached_hash_ref(ref: str) -> bool:
    """True for refs that name a bare commit hash instead of a branch.

    Windows agents can cache ``refs/remotes/origin/<sha>`` after a detached
    checkout; those are not branches.
    """
    return bool(_HASH_RE.match(_branch_suffix(ref.strip())))


def filter_branch_refs(refs: Iterable[str]) -> list[str]:
    return [r.strip() for r in refs if r.strip() and not is_detached_hash_ref(r)]


def encode_branch_list(refs: Iterable[str]) -> str:
    text = "\n".join(refs)
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def sync_branches(
    *,
    repo: Repository,
    registry: RegistryClient,
    vcs_uri: str,
    console: ConsoleProtocol,
) -> Result[BranchSyncOutcome, ReleaseError]:
    """Send the live branch list to the registry.

    Skips the registry call (successfully) when git yields no usable refs.
    """

    def _tier_failed(name: str, error: GitError) -> None:
        console.warning(f"git {name} failed: {error.message}")

    raw = repo.remote_branch_refs(on_failure=_tier_failed)
    if not raw:
        reason = "no remote branches found"
        console.warning(f"{reason}, skipping branch sync; {FULL_CHECKOUT_HINT}")
        return Ok(BranchSyncOutcome(synced=False, reason=reason))

    branches = filter_branch_refs(raw)
    if not branches:
        reason = "only detached commit refs found"
        console.warning(f"{reason}, skipping branch sync; {FULL_CHECKOUT_HINT}")
        return Ok(BranchSyncOutcome(synced=False, reason=reason))

    console.info(f"Synchronizing {len(branches)} branch(es) with the registry")
    result = registry.sync_branches(vcs_uri=vcs_uri, live_branches_b64=encode_branch_list(branches))
    if isinstance(result, Err):
        return result

    console.success("Branches synchronized")
    return Ok(BranchSyncOutcome(synced=True, branches=tuple(branches)))
