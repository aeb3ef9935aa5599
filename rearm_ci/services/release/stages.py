"""Pipeline stages composed from the release components.

Each stage validates its inputs and the host context before the first
external call, talks to git and the registry, and writes its results to
the pipeline state for later stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from rearm_ci.core.config import ConfigError
from rearm_ci.core.result import Err, Ok, Result
from rearm_ci.git.repository import Repository
from rearm_ci.output.console import ConsoleProtocol
from rearm_ci.pipeline.host import HostProtocol
from rearm_ci.pipeline.state import BuildContext, Keys, PipelineState
from rearm_ci.services.release.branches import BranchSyncOutcome, sync_branches
from rearm_ci.services.release.decision import evaluate_build_necessity
from rearm_ci.services.release.errors import ReleaseError
from rearm_ci.services.release.finalizer import (
    FinalizeOutcome,
    check_target_lifecycle,
    finalize_release,
)
from rearm_ci.services.release.history import collect_commit_history
from rearm_ci.services.release.model import (
    BuildDecision,
    ComponentOptions,
    Deliverable,
    ReleaseArtifacts,
    ReleaseSubmission,
    ResolvedVersion,
)
from rearm_ci.services.release.registry import RegistryClient
from rearm_ci.services.release.versioning import VersionRequest, resolve_version

__all__ = [
    "FinalizeOptions",
    "FinalizeStageOutcome",
    "InitializeOptions",
    "InitializeOutcome",
    "run_evaluate",
    "run_finalize",
    "run_initialize",
    "run_sync_branches",
    "utc_timestamp",
]

CI_META = "azuredevops"


def utc_timestamp() -> str:
    """Current time as ``2024-05-01T12:00:00.000Z``."""
    now = datetime.now(UTC)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def _config_error(error: ConfigError) -> ReleaseError:
    return ReleaseError(kind="config_missing", message=error.message)


@dataclass(frozen=True, slots=True)
class InitializeOptions:
    branch: str | None = None
    explicit_version: str | None = None
    up_to_version: str | None = None
    component: ComponentOptions = field(default_factory=ComponentOptions)
    sync_first: bool = True


@dataclass(frozen=True, slots=True)
class InitializeOutcome:
    decision: BuildDecision
    version: ResolvedVersion | None = None
    branches: BranchSyncOutcome | None = None

    @property
    def message(self) -> str:
        return "Release initialized" if self.decision.do_build else "No build needed"


@dataclass(frozen=True, slots=True)
class FinalizeOptions:
    lifecycle: str = "ASSEMBLED"
    branch: str | None = None
    version: str | None = None
    run_on_condition: bool = True
    deliverable: Deliverable | None = None
    artifacts: ReleaseArtifacts = field(default_factory=ReleaseArtifacts)


@dataclass(frozen=True, slots=True)
class FinalizeStageOutcome:
    outcome: FinalizeOutcome | None = None

    @property
    def skipped(self) -> bool:
        return self.outcome is None

    @property
    def message(self) -> str:
        if self.outcome is None:
            return "Skipped - DO_BUILD is not true"
        if self.outcome.finalized:
            return "Release finalized"
        return "Release metadata sent successfully"


# ----------------------------------------------------------------------
# sync-branches
# ----------------------------------------------------------------------


def run_sync_branches(
    *,
    host: HostProtocol,
    repo: Repository,
    registry: RegistryClient,
    console: ConsoleProtocol,
) -> Result[BranchSyncOutcome, ReleaseError]:
    ctx = BuildContext.from_host(host, require_branch=False)
    if isinstance(ctx, Err):
        return Err(_config_error(ctx.error))

    available = registry.ensure_available()
    if isinstance(available, Err):
        return available

    console.header("Branch synchronization")
    return sync_branches(repo=repo, registry=registry, vcs_uri=ctx.value.vcs_uri, console=console)


# ----------------------------------------------------------------------
# evaluate / initialize
# ----------------------------------------------------------------------


def _describe(ctx: BuildContext, console: ConsoleProtocol, registry: RegistryClient) -> None:
    console.print(f"Repository URI: {ctx.vcs_uri}")
    console.print(f"Repository path: {registry.repo_path}")
    console.print(f"Branch: {ctx.branch}")
    console.print(f"Commit: {ctx.commit}")


def run_evaluate(
    options: InitializeOptions,
    *,
    host: HostProtocol,
    repo: Repository,
    registry: RegistryClient,
    console: ConsoleProtocol,
) -> Result[BuildDecision, ReleaseError]:
    """Build decision only; nothing is written to the registry."""
    ctx = BuildContext.from_host(host, branch=options.branch)
    if isinstance(ctx, Err):
        return Err(_config_error(ctx.error))

    available = registry.ensure_available()
    if isinstance(available, Err):
        return available

    _describe(ctx.value, console, registry)
    console.header("Build necessity")
    decision = evaluate_build_necessity(
        repo=repo,
        registry=registry,
        vcs_uri=ctx.value.vcs_uri,
        commit=ctx.value.commit,
        branch=ctx.value.branch,
        console=console,
        up_to_version=options.up_to_version,
    )
    PipelineState(host).record_decision(
        do_build=decision.do_build, last_commit=decision.last_commit
    )
    console.print(f"DO_BUILD: {str(decision.do_build).lower()}")
    return Ok(decision)


def run_initialize(
    options: InitializeOptions,
    *,
    host: HostProtocol,
    repo: Repository,
    registry: RegistryClient,
    console: ConsoleProtocol,
) -> Result[InitializeOutcome, ReleaseError]:
    """Sync branches, decide, and create the PENDING release when needed.

    Branch sync and the build decision share no data; ``sync_first``
    picks their order.
    """
    ctx_result = BuildContext.from_host(host, branch=options.branch)
    if isinstance(ctx_result, Err):
        return Err(_config_error(ctx_result.error))
    ctx = ctx_result.value

    available = registry.ensure_available()
    if isinstance(available, Err):
        return available

    state = PipelineState(host)
    state.record_build_start(utc_timestamp())
    _describe(ctx, console, registry)

    branches: BranchSyncOutcome | None = None
    if options.sync_first:
        console.header("Branch synchronization")
        synced = sync_branches(repo=repo, registry=registry, vcs_uri=ctx.vcs_uri, console=console)
        if isinstance(synced, Err):
            return synced
        branches = synced.value

    console.header("Build necessity")
    decision = evaluate_build_necessity(
        repo=repo,
        registry=registry,
        vcs_uri=ctx.vcs_uri,
        commit=ctx.commit,
        branch=ctx.branch,
        console=console,
        up_to_version=options.up_to_version,
    )
    state.record_decision(do_build=decision.do_build, last_commit=decision.last_commit)
    console.print(f"DO_BUILD: {str(decision.do_build).lower()}")

    if not options.sync_first:
        console.header("Branch synchronization")
        synced = sync_branches(repo=repo, registry=registry, vcs_uri=ctx.vcs_uri, console=console)
        if isinstance(synced, Err):
            return synced
        branches = synced.value

    version: ResolvedVersion | None = None
    if decision.do_build:
        console.header("Version")
        request = VersionRequest(
            commit=ctx.commit,
            branch=ctx.branch,
            vcs_uri=ctx.vcs_uri,
            explicit_version=options.explicit_version,
            last_commit=decision.last_commit or None,
            component=options.component,
        )
        resolved = resolve_version(request, repo=repo, registry=registry, console=console)
        if isinstance(resolved, Err):
            return resolved
        version = resolved.value
        state.record_version(full=version.full, short=version.short)
        console.success(f"Version: {version.full} (tag-safe: {version.short})")
    else:
        console.info("No changes detected, skipping build")

    state.record_rejection_command()
    return Ok(InitializeOutcome(decision=decision, version=version, branches=branches))


# ----------------------------------------------------------------------
# finalize
# ----------------------------------------------------------------------


def _with_ci_defaults(deliverable: Deliverable, ctx: BuildContext) -> Deliverable:
    build_id = deliverable.build_id
    if build_id is None and ctx.build_number:
        build_id = f"{CI_META}{ctx.build_number}"
    return replace(
        deliverable,
        build_id=build_id,
        build_uri=deliverable.build_uri or ctx.build_uri,
        ci_meta=deliverable.ci_meta or CI_META,
    )


def run_finalize(
    options: FinalizeOptions,
    *,
    host: HostProtocol,
    repo: Repository,
    registry: RegistryClient,
    console: ConsoleProtocol,
) -> Result[FinalizeStageOutcome, ReleaseError]:
    state = PipelineState(host)
    if options.run_on_condition and state.do_build is not True:
        console.info("DO_BUILD is not true, skipping release finalization")
        return Ok(FinalizeStageOutcome())

    target = check_target_lifecycle(options.lifecycle)
    if isinstance(target, Err):
        return target

    ctx_result = BuildContext.from_host(host, branch=options.branch)
    if isinstance(ctx_result, Err):
        return Err(_config_error(ctx_result.error))
    ctx = ctx_result.value

    version = (options.version or "").strip() or state.full_version
    if not version:
        return Err(
            ReleaseError(
                kind="config_missing",
                message=f"{Keys.FULL_VERSION} is not available",
                hint="Make sure the initialize stage ran successfully",
            )
        )

    available = registry.ensure_available()
    if isinstance(available, Err):
        return available

    _describe(ctx, console, registry)
    console.print(f"Version: {version}")
    console.print(f"Lifecycle: {target.value}")

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
        last_commit=state.last_commit or None,
        commit=ctx.commit,
        console=console,
    )
    deliverable = options.deliverable
    if deliverable is not None:
        deliverable = _with_ci_defaults(deliverable, ctx)

    submission = ReleaseSubmission(
        commit=ctx.commit,
        branch=ctx.branch,
        version=version,
        vcs_uri=ctx.vcs_uri,
        lifecycle=target.value,
        commit_message=meta.value.subject or None,
        commit_date=meta.value.date or None,
        history=history,
        deliverable=deliverable,
        artifacts=options.artifacts,
        date_start=state.build_start,
        date_end=utc_timestamp(),
    )

    console.header("Release submission")
    outcome = finalize_release(submission, registry=registry, console=console)
    if isinstance(outcome, Err):
        return outcome
    return Ok(FinalizeStageOutcome(outcome=outcome.value))
