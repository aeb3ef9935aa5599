"""Typed access to the variables stages hand to each other.

Keys written by ``initialize``:

    DO_BUILD / DoBuild          "true" | "false" (DoBuild is an output variable)
    LAST_COMMIT / LastCommit    commit of the previous release, "" if none
    BUILD_START                 ISO-8601 UTC timestamp of the decision
    REARM_FULL_VERSION          resolved version
    REARM_SHORT_VERSION         tag-safe variant of the version
    REARM_COMMAND               "--lifecycle REJECTED " for steps that
                                want to report a failed build

Key written by ``install-cli``:

    RearmCli                    absolute path of the installed rearm binary

Context variables read from the host:

    Build.Repository.Uri, Build.SourceVersion, Build.SourceBranchName,
    Build.BuildNumber, Build.BuildUri, Pipeline.Workspace, Agent.TempDirectory
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rearm_ci.core.config import ConfigError
from rearm_ci.core.result import Err, Ok, Result
from rearm_ci.pipeline.host import HostProtocol

__all__ = ["BuildContext", "PipelineState", "Keys"]


class Keys:
    DO_BUILD = "DO_BUILD"
    DO_BUILD_OUTPUT = "DoBuild"
    LAST_COMMIT = "LAST_COMMIT"
    LAST_COMMIT_OUTPUT = "LastCommit"
    BUILD_START = "BUILD_START"
    FULL_VERSION = "REARM_FULL_VERSION"
    SHORT_VERSION = "REARM_SHORT_VERSION"
    COMMAND = "REARM_COMMAND"
    CLI_PATH = "RearmCli"

    REPOSITORY_URI = "Build.Repository.Uri"
    SOURCE_VERSION = "Build.SourceVersion"
    SOURCE_BRANCH_NAME = "Build.SourceBranchName"
    BUILD_NUMBER = "Build.BuildNumber"
    BUILD_URI = "Build.BuildUri"
    PIPELINE_WORKSPACE = "Pipeline.Workspace"
    AGENT_TEMP = "Agent.TempDirectory"


REJECTED_LIFECYCLE_COMMAND = "--lifecycle REJECTED "


@dataclass(frozen=True, slots=True)
class BuildContext:
    """Repository identity and build coordinates supplied by the host."""

    vcs_uri: str
    commit: str
    branch: str
    build_number: str | None = None
    build_uri: str | None = None

    @classmethod
    def from_host(
        cls,
        host: HostProtocol,
        *,
        branch: str | None = None,
        require_branch: bool = True,
    ) -> Result[BuildContext, ConfigError]:
        vcs_uri = host.get_variable(Keys.REPOSITORY_URI)
        if not vcs_uri:
            return Err(ConfigError(f"{Keys.REPOSITORY_URI} is not available"))
        commit = host.get_variable(Keys.SOURCE_VERSION)
        if not commit:
            return Err(ConfigError(f"{Keys.SOURCE_VERSION} is not available"))
        resolved_branch = (branch or "").strip() or host.get_variable(Keys.SOURCE_BRANCH_NAME) or ""
        if require_branch and not resolved_branch:
            return Err(ConfigError("Branch is not available"))
        return Ok(
            cls(
                vcs_uri=vcs_uri,
                commit=commit,
                branch=resolved_branch,
                build_number=host.get_variable(Keys.BUILD_NUMBER),
                build_uri=host.get_variable(Keys.BUILD_URI),
            )
        )


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


class PipelineState:
    """Read/write view over the host's variable store.

    Each deciding stage writes the build decision; finalize reads it back
    instead of recomputing it.
    """

    def __init__(self, host: HostProtocol) -> None:
        self._host = host

    def record_decision(self, *, do_build: bool, last_commit: str) -> None:
        flag = _format_bool(do_build)
        self._host.set_variable(Keys.DO_BUILD, flag)
        self._host.set_variable(Keys.DO_BUILD_OUTPUT, flag, is_output=True)
        self._host.set_variable(Keys.LAST_COMMIT, last_commit)
        self._host.set_variable(Keys.LAST_COMMIT_OUTPUT, last_commit, is_output=True)

    def record_build_start(self, timestamp: str) -> None:
        self._host.set_variable(Keys.BUILD_START, timestamp)

    def record_version(self, *, full: str, short: str) -> None:
        self._host.set_variable(Keys.FULL_VERSION, full)
        self._host.set_variable(Keys.FULL_VERSION, full, is_output=True)
        self._host.set_variable(Keys.SHORT_VERSION, short)
        self._host.set_variable(Keys.SHORT_VERSION, short, is_output=True)

    def record_rejection_command(self) -> None:
        self._host.set_variable(Keys.COMMAND, REJECTED_LIFECYCLE_COMMAND)

    def record_cli_path(self, path: Path) -> None:
        self._host.set_variable(Keys.CLI_PATH, str(path), is_output=True)

    @property
    def do_build(self) -> bool | None:
        """Recorded decision, None when no decision was recorded."""
        value = self._host.get_variable(Keys.DO_BUILD)
        if value is None:
            return None
        return value.lower() == "true"

    @property
    def last_commit(self) -> str:
        value = self._host.get_variable(Keys.LAST_COMMIT) or ""
        return "" if value == "null" else value

    @property
    def build_start(self) -> str | None:
        return self._host.get_variable(Keys.BUILD_START)

    @property
    def full_version(self) -> str | None:
        return self._host.get_variable(Keys.FULL_VERSION)

    @property
    def short_version(self) -> str | None:
        return self._host.get_variable(Keys.SHORT_VERSION)

    @property
    def cli_path(self) -> str | None:
        return self._host.get_variable(Keys.CLI_PATH)

    def tool_directory(self) -> Path | None:
        """Where downloaded tools go: Pipeline.Workspace, else Agent.TempDirectory."""
        base = self._host.get_variable(Keys.PIPELINE_WORKSPACE) or self._host.get_variable(
            Keys.AGENT_TEMP
        )
        return Path(base) if base else None
