"""Typed facade over the ``rearm`` CLI.

Every subcommand receives the credential triple ``-k <api key> -i <key id>
-u <registry url>``; everything else is a long flag. The API key is
registered with the console so it never shows up in logs.

Replies are returned as raw text: the CLI prints log lines and JSON to
the same streams, so interpreting them is left to the callers.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from time import sleep

from rearm_ci.core.result import Err, Ok, Result
from rearm_ci.output.console import ConsoleProtocol, Style
from rearm_ci.platform.command import Command
from rearm_ci.platform.process import ProcessError, ProcessOutput
from rearm_ci.platform.process import run as run_process
from rearm_ci.platform.process import run_streaming
from rearm_ci.services.release.errors import ReleaseError
from rearm_ci.services.release.model import ComponentOptions, Lifecycle, ReleaseSubmission
from rearm_ci.services.release.timeouts import (
    REGISTRY_READ_RETRY_ATTEMPTS,
    REGISTRY_READ_RETRY_DELAY_SECONDS,
    REGISTRY_TIMEOUT_SECONDS,
)

__all__ = [
    "CommitDetails",
    "RegistryClient",
    "RegistryCredentials",
]


@dataclass(frozen=True, slots=True)
class RegistryCredentials:
    api_key: str
    key_id: str
    url: str


@dataclass(frozen=True, slots=True)
class CommitDetails:
    """Commit identity sent with ``getversion`` and a pending ``addrelease``."""

    commit: str
    branch: str
    vcs_uri: str
    message: str | None = None
    date: str | None = None
    commits_b64: str | None = None


def _is_transient_registry_error(error: ProcessError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    markers = (
        "timed out",
        "timeout",
        "connection reset",
        "connection refused",
        "temporarily unavailable",
        "service unavailable",
        "bad gateway",
        "gateway timeout",
        "no such host",
        "status code 429",
        "status code 502",
        "status code 503",
        "status code 504",
    )
    return any(marker in text for marker in markers)


def _exit_message(command: Command, error: ProcessError) -> str:
    name = command.argv[1] if len(command.argv) > 1 else command.executable
    return f"rearm {name} failed with exit code {error.returncode}"


class RegistryClient:
    """Runs rearm subcommands against one registry for one repository.

    Attributes:
        cli: Executable name or path of the rearm CLI
        repo_path: Repository path as passed to ``--repo-path``; also the cwd
    """

    def __init__(
        self,
        *,
        cli: str,
        credentials: RegistryCredentials,
        repo_path: str,
        console: ConsoleProtocol,
        vcs_type: str = "git",
    ) -> None:
        self.cli = cli
        self.repo_path = repo_path
        self._credentials = credentials
        self._console = console
        self._vcs_type = vcs_type
        console.mask_secret(credentials.api_key)

    @property
    def cwd(self) -> Path:
        return Path(self.repo_path)

    def ensure_available(self) -> Result[None, ReleaseError]:
        if shutil.which(self.cli) is None and not Path(self.cli).is_file():
            return Err(
                ReleaseError(
                    kind="cli_missing",
                    message=f"rearm CLI not found: {self.cli}",
                    hint="Run: rearm-ci install-cli",
                )
            )
        return Ok(None)

    # ------------------------------------------------------------------
    # Subcommands
    # ------------------------------------------------------------------

    def sync_branches(self, *, vcs_uri: str, live_branches_b64: str) -> Result[None, ReleaseError]:
        cmd = (
            self.command("syncbranches")
            .opt("--vcsuri", vcs_uri)
            .opt("--repo-path", self.repo_path)
            .opt("--livebranches", live_branches_b64)
        )
        result = self._run_read(cmd)
        if isinstance(result, Err):
            return result
        return Ok(None)

    def get_latest_release(
        self,
        *,
        vcs_uri: str,
        branch: str,
        up_to_version: str | None = None,
    ) -> Result[str, ReleaseError]:
        """Raw ``getlatestrelease`` reply (stdout)."""
        cmd = (
            self.command("getlatestrelease")
            .opt("--vcsuri", vcs_uri)
            .opt("--repo-path", self.repo_path)
            .opt("--branch", branch)
            .opt_if("--uptoversion", up_to_version)
        )
        result = self._run_read(cmd)
        if isinstance(result, Err):
            return result
        return Ok(result.value.stdout)

    def get_version(
        self,
        details: CommitDetails,
        component: ComponentOptions,
    ) -> Result[str, ReleaseError]:
        """Ask the registry for the next version; it records a PENDING release.

        Returns stdout and stderr combined, which is where the JSON reply lands.
        """
        cmd = self._with_commit(self.command("getversion"), details)
        cmd.opt("--lifecycle", str(Lifecycle.PENDING))
        self._with_component(cmd, component)
        result = self._run(cmd)
        if isinstance(result, Err):
            return result
        return Ok(result.value.combined)

    def add_pending_release(
        self,
        details: CommitDetails,
        version: str,
        component: ComponentOptions,
    ) -> Result[None, ReleaseError]:
        cmd = self._with_commit(self.command("addrelease"), details)
        cmd.opt("--lifecycle", str(Lifecycle.PENDING)).opt("--version", version)
        self._with_component(cmd, component)
        result = self._run(cmd)
        if isinstance(result, Err):
            return result
        return Ok(None)

    def add_release(self, submission: ReleaseSubmission) -> Result[str, ReleaseError]:
        """Submit the finished release; returns the combined output.

        The output is echoed line by line while the CLI runs.
        """
        cmd = (
            self.command("addrelease")
            .opt("--branch", submission.branch)
            .opt("--version", submission.version)
            .opt("--vcsuri", submission.vcs_uri)
            .opt("--repo-path", self.repo_path)
            .opt("--vcstype", self._vcs_type)
            .opt("--lifecycle", str(submission.lifecycle))
            .opt("--commit", submission.commit)
            .opt_if("--commitmessage", submission.commit_message)
            .opt_if("--date", submission.commit_date)
            .opt_if("--commits", submission.history.encode())
        )
        if submission.deliverable is not None:
            cmd.extend(submission.deliverable.flags())
        cmd.opt_if("--scearts", submission.artifacts.source_artifacts)
        cmd.opt_if("--releasearts", submission.artifacts.release_artifacts)
        cmd.opt_if("--datestart", submission.date_start)
        cmd.opt_if("--dateend", submission.date_end)

        self._console.print(f"$ {cmd.display()}", Style.DIM)
        result = run_streaming(
            cmd.argv,
            cwd=self.cwd,
            on_line=lambda line: self._console.print(line, Style.DIM),
            timeout=REGISTRY_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            error = result.error
            return Err(
                ReleaseError(
                    kind="registry_failed",
                    message=f"{_exit_message(cmd, error)}: {error.output}",
                    hint=None,
                )
            )
        return Ok(result.value.combined)

    def finalize_release(self, release_id: str) -> Result[None, ReleaseError]:
        cmd = self.command("releasefinalizer").opt("--releaseid", release_id)
        result = self._run(cmd)
        if isinstance(result, Err):
            return result
        return Ok(None)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def command(self, subcommand: str) -> Command:
        creds = self._credentials
        return (
            Command(self.cli, subcommand)
            .secret("-k", creds.api_key)
            .opt("-i", creds.key_id)
            .opt("-u", creds.url)
        )

    def _with_commit(self, cmd: Command, details: CommitDetails) -> Command:
        return (
            cmd.opt("--commit", details.commit)
            .opt_if("--commitmessage", details.message)
            .opt_if("--date", details.date)
            .opt("--vcstype", self._vcs_type)
            .opt("--vcsuri", details.vcs_uri)
            .opt("--repo-path", self.repo_path)
            .opt("--branch", details.branch)
            .opt_if("--commits", details.commits_b64)
        )

    @staticmethod
    def _with_component(cmd: Command, component: ComponentOptions) -> Command:
        if component.create_component:
            cmd.arg("--createcomponent")
            cmd.opt("--createcomponent-version-schema", component.version_schema)
            cmd.opt_if(
                "--createcomponent-feature-branch-version-schema",
                component.feature_branch_version_schema,
            )
        cmd.flag_if("--allow-rebuild", component.allow_rebuild)
        return cmd

    def _run(self, cmd: Command) -> Result[ProcessOutput, ReleaseError]:
        self._console.print(f"$ {cmd.display()}", Style.DIM)
        result = run_process(cmd.argv, cwd=self.cwd, timeout=REGISTRY_TIMEOUT_SECONDS)
        if isinstance(result, Err):
            return Err(self._error(cmd, result.error))
        return result

    def _run_read(
        self,
        cmd: Command,
        *,
        retry_attempts: int = REGISTRY_READ_RETRY_ATTEMPTS,
    ) -> Result[ProcessOutput, ReleaseError]:
        attempts = max(1, retry_attempts)
        self._console.print(f"$ {cmd.display()}", Style.DIM)
        for attempt in range(attempts):
            result = run_process(cmd.argv, cwd=self.cwd, timeout=REGISTRY_TIMEOUT_SECONDS)
            if isinstance(result, Ok):
                return result

            error = result.error
            if attempt < attempts - 1 and _is_transient_registry_error(error):
                self._console.warning(f"{_exit_message(cmd, error)}, retrying")
                sleep(REGISTRY_READ_RETRY_DELAY_SECONDS * (attempt + 1))
                continue

            return Err(self._error(cmd, error))

        return Err(ReleaseError(kind="registry_failed", message=f"{cmd.argv[1]} failed"))

    @staticmethod
    def _error(cmd: Command, error: ProcessError) -> ReleaseError:
        return ReleaseError(
            kind="registry_failed",
            message=_exit_message(cmd, error),
            hint=error.output or None,
        )
