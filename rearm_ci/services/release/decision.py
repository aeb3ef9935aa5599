"""Build necessity: has anything changed since the last release on this branch?

Every failure along the way resolves toward building. A missed rebuild is
worse than a redundant one, so the evaluator never returns an error.
"""

from __future__ import annotations

import json

from rearm_ci.core.json_fragment import find_json_object
from rearm_ci.core.result import Err, Ok
from rearm_ci.core.structured import StrDict, as_str_dict, get_path_str
from rearm_ci.git.repository import Repository
from rearm_ci.output.console import ConsoleProtocol
from rearm_ci.services.release.model import BuildDecision
from rearm_ci.services.release.registry import RegistryClient

__all__ = ["evaluate_build_necessity", "last_release_commit"]

_BUILD_NEEDED = BuildDecision(do_build=True, last_commit="")


def _parse_latest_release(reply: str) -> StrDict | None:
    text = reply.strip()
    if not text or text == "null":
        return None
    try:
        return as_str_dict(json.loads(text))
    except json.JSONDecodeError:
        pass
    # Log lines around the JSON reply.
    match find_json_object(text, "sourceCodeEntryDetails"):
        case Ok(obj):
            return obj
        case Err(_):
            return None


def last_release_commit(reply: str) -> str | None:
    """Commit of the latest release from a ``getlatestrelease`` reply.

    None when there is no release, the reply is unreadable, or the commit
    is missing, empty or the literal ``"null"``.
    """
    release = _parse_latest_release(reply)
    if release is None:
        return None
    commit = get_path_str(release, "sourceCodeEntryDetails", "commit")
    if commit is None or commit == "null":
        return None
    return commit


def evaluate_build_necessity(
    *,
    repo: Repository,
    registry: RegistryClient,
    vcs_uri: str,
    commit: str,
    branch: str,
    console: ConsoleProtocol,
    path: str = ".",
    up_to_version: str | None = None,
) -> BuildDecision:
    """Decide whether ``commit`` needs a new release build."""
    reply = registry.get_latest_release(vcs_uri=vcs_uri, branch=branch, up_to_version=up_to_version)
    if isinstance(reply, Err):
        console.warning(f"Could not query the latest release ({reply.error.message}), build is needed")
        return _BUILD_NEEDED

    last_commit = last_release_commit(reply.value)
    if last_commit is None:
        console.info("No previous release found, build is needed")
        return _BUILD_NEEDED
    console.print(f"Last release commit: {last_commit}")

    if not repo.commit_exists(last_commit):
        console.warning(
            f"Last release commit {last_commit} is not in the local history "
            "(shallow checkout?), build is needed"
        )
        return _BUILD_NEEDED

    match repo.has_diff(last_commit, commit, path):
        case Err(e):
            console.warning(f"Diff check failed ({e.message}), build is needed")
            return BuildDecision(do_build=True, last_commit=last_commit)
        case Ok(changed):
            if changed:
                console.info(f"Changes since {last_commit[:12]}, build is needed")
            else:
                console.info(f"No changes since {last_commit[:12]}, no build needed")
            return BuildDecision(do_build=changed, last_commit=last_commit)
