from __future__ import annotations

from rearm_ci.core.result import Err
from rearm_ci.git.repository import Repository
from rearm_ci.output.console import ConsoleProtocol
from rearm_ci.services.release.model import CommitHistory

__all__ = ["collect_commit_history"]


def collect_commit_history(
    *,
    repo: Repository,
    last_commit: str | None,
    commit: str,
    console: ConsoleProtocol,
    path: str = ".",
) -> CommitHistory:
    """Commits since the previous release, or just ``commit`` without one.

    A git failure is not fatal: the release is sent without history.
    """
    result = repo.log_range(last_commit or None, commit, path)
    if isinstance(result, Err):
        console.warning(f"Could not read commit history: {result.error.message}")
        return CommitHistory()

    history = CommitHistory.of(result.value)
    console.print(f"Commit history: {len(history)} commit(s)")
    return history
