"""Git repository queries.

This module provides the narrow git surface the release flow needs:
remote branch refs, commit existence, commit-range history, diff presence
and HEAD metadata. All operations return Result types; none of them writes
to the working tree.

Usage:
    repo = Repository(Path("."))

    refs = repo.remote_branch_refs()          # never fails, may be empty

    match repo.has_diff(last, head, "."):
        case Ok(changed):
            print("changed" if changed else "unchanged")
        case Err(e):
            print(f"diff failed: {e.message}")
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

from rearm_ci.core.fallback import Strategy, first_non_empty
from rearm_ci.core.result import Err, Ok, Result
from rearm_ci.platform.process import ProcessError, ProcessOutput
from rearm_ci.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

# Chosen so it does not collide with anything a commit subject usually holds.
LOG_FIELD_SEPARATOR = "|||"
LOG_PRETTY_FORMAT = LOG_FIELD_SEPARATOR.join(("%H", "%ad", "%s", "%an", "%ae"))
MAX_HISTORY_COMMITS = 100

__all__ = [
    "Commit",
    "CommitMeta",
    "GitError",
    "LOG_FIELD_SEPARATOR",
    "Repository",
    "parse_log_output",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class Commit:
    """One commit from ``git log`` in the fixed record format."""

    hash: str
    author_date: str
    subject: str
    author_name: str
    author_email: str

    def to_record(self) -> str:
        return LOG_FIELD_SEPARATOR.join(
            (self.hash, self.author_date, self.subject, self.author_name, self.author_email)
        )

    @classmethod
    def parse_record(cls, line: str) -> Commit | None:
        """Split a record line into its 5 fields.

        hash and date are taken from the left and name and email from the
        right, so a separator inside the subject stays in the subject.
        """
        head = line.split(LOG_FIELD_SEPARATOR, 2)
        if len(head) != 3:
            return None
        tail = head[2].rsplit(LOG_FIELD_SEPARATOR, 2)
        if len(tail) != 3:
            return None
        sha, date = head[0].strip(), head[1].strip()
        if not sha:
            return None
        return cls(
            hash=sha,
            author_date=date,
            subject=tail[0],
            author_name=tail[1],
            author_email=tail[2].strip(),
        )


@dataclass(frozen=True, slots=True)
class CommitMeta:
    """Subject and ISO-8601 author date of a single commit."""

    subject: str
    date: str


def parse_log_output(output: str) -> Iterator[Commit]:
    """Lazily parse ``git log`` output in the record format.

    Lines that do not hold 5 fields are skipped.
    """
    for line in output.splitlines():
        if not line.strip():
            continue
        commit = Commit.parse_record(line)
        if commit is not None:
            yield commit


class Repository:
    """Git repository abstraction.

    Attributes:
        path: Path to the repository (any directory inside the work tree)
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    # ------------------------------------------------------------------
    # Branch refs
    # ------------------------------------------------------------------

    def remote_branch_refs(
        self,
        *,
        on_failure: Callable[[str, GitError], None] | None = None,
    ) -> list[str]:
        """List remote branch refs (``refs/remotes/<remote>/<name>``).

        Tries ``git branch -r``, then the locally cached refs, then a
        ``fetch --prune`` followed by the cached refs again. Never fails:
        exhausting every strategy returns an empty list.
        """
        outcome = first_non_empty(
            (
                Strategy("branch -r", self._branch_remote_refs),
                Strategy("for-each-ref", self._cached_remote_refs),
                Strategy("fetch --prune", self._fetch_then_cached_refs),
            ),
            on_failure=on_failure,
        )
        return outcome.values

    def _branch_remote_refs(self) -> Result[list[str], GitError]:
        result = self._run(["branch", "-r", "--format=%(refname)"])
        return self._lines_or_error("branch -r", result)

    def _cached_remote_refs(self) -> Result[list[str], GitError]:
        result = self._run(["for-each-ref", "--format=%(refname)", "refs/remotes"])
        return self._lines_or_error("for-each-ref", result)

    def _fetch_then_cached_refs(self) -> Result[list[str], GitError]:
        fetched = self.fetch_prune()
        if isinstance(fetched, Err):
            return fetched
        return self._cached_remote_refs()

    def fetch_prune(self) -> Result[str, GitError]:
        """Fetch from the default remote, pruning deleted branches."""
        result = self._run(["fetch", "--prune"])
        match result:
            case Err(e):
                return Err(_git_error("fetch --prune", e, "fetch failed"))
            case Ok(out):
                return Ok(out.stdout.strip())

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def commit_exists(self, sha: str) -> bool:
        """Check whether a commit is resolvable in the local object store.

        False for shallow clones that truncated the commit away.
        """
        if not sha.strip():
            return False
        result = self._run(["cat-file", "-e", f"{sha.strip()}^{{commit}}"])
        return isinstance(result, Ok)

    def head_commit_meta(self) -> Result[CommitMeta, GitError]:
        """Subject and ISO-8601 date of HEAD."""
        result = self._run(
            ["log", "-1", "--date=iso-strict", f"--pretty=%ad{LOG_FIELD_SEPARATOR}%s"]
        )
        if isinstance(result, Err):
            return Err(_git_error("log -1", result.error, "failed to read HEAD commit"))

        line = result.value.stdout.strip()
        if LOG_FIELD_SEPARATOR not in line:
            return Err(GitError(command="log -1", message=f"unexpected git log output: {line!r}"))
        date, subject = line.split(LOG_FIELD_SEPARATOR, 1)
        return Ok(CommitMeta(subject=subject.strip(), date=date.strip()))

    def log_range(
        self,
        from_sha: str | None,
        to_sha: str,
        path: str = ".",
    ) -> Result[Iterator[Commit], GitError]:
        """Commits in ``from_sha..to_sha`` touching ``path``, newest first.

        When ``from_sha`` is absent or not resolvable locally, only the
        ``to_sha`` commit itself is returned.
        """
        pretty = f"--pretty={LOG_PRETTY_FORMAT}"
        if from_sha and from_sha != "null" and self.commit_exists(from_sha):
            args = [
                "log",
                f"-{MAX_HISTORY_COMMITS}",
                f"{from_sha}..{to_sha}",
                "--date=iso-strict",
                pretty,
                "--",
                path,
            ]
        else:
            args = ["log", "-1", to_sha, "--date=iso-strict", pretty]

        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error("log", result.error, "failed to read commit history"))
        return Ok(parse_log_output(result.value.stdout))

    def has_diff(self, from_sha: str, to_sha: str, path: str = ".") -> Result[bool, GitError]:
        """True iff ``git diff from..to -- path`` prints anything but whitespace."""
        result = self._run(["diff", f"{from_sha}..{to_sha}", "--", path])
        match result:
            case Err(e):
                return Err(_git_error("diff", e, "git diff failed"))
            case Ok(out):
                return Ok(out.stdout.strip() != "")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run(self, args: list[str]) -> Result[ProcessOutput, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in {"fetch", "pull"} else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)

    def _lines_or_error(
        self,
        command: str,
        result: Result[ProcessOutput, ProcessError],
    ) -> Result[list[str], GitError]:
        match result:
            case Err(e):
                return Err(_git_error(command, e, f"git {command} failed"))
            case Ok(out):
                return Ok([ln.strip() for ln in out.stdout.splitlines() if ln.strip()])


def _git_error(command: str, error: ProcessError, fallback: str) -> GitError:
    return GitError(
        command=command,
        message=error.stderr.strip() or error.stdout.strip() or fallback,
        returncode=error.returncode,
    )
