"""Git operations module.

Usage:
    from rearm_ci.git import Repository

    repo = Repository(Path("."))
    refs = repo.remote_branch_refs()
    history = repo.log_range(last_commit, head, ".")
"""

from rearm_ci.git.repository import (
    LOG_FIELD_SEPARATOR,
    Commit,
    CommitMeta,
    GitError,
    Repository,
    parse_log_output,
)

__all__ = [
    "LOG_FIELD_SEPARATOR",
    "Commit",
    "CommitMeta",
    "GitError",
    "Repository",
    "parse_log_output",
]
