from __future__ import annotations

import typer

from rearm_ci.cli.commands._helpers import (
    API_KEY_ID_OPTION,
    API_KEY_OPTION,
    CLI_OPTION,
    REPO_PATH_OPTION,
    URL_OPTION,
    build_registry,
    complete,
    exit_on_error,
    resolve_flag,
    resolve_input,
)
from rearm_ci.cli.context import CLIContext, build_context
from rearm_ci.services.release.model import Deliverable, ReleaseArtifacts
from rearm_ci.services.release.stages import FinalizeOptions, run_finalize


def _deliverable(
    ctx: CLIContext,
    *,
    odel_id: str | None,
    odel_type: str | None,
    odel_digests: str | None,
    odel_purl: str | None,
    odel_build_id: str | None,
    odel_build_uri: str | None,
    odel_ci_meta: str | None,
    odel_arts_json: str | None,
) -> Deliverable | None:
    deliverable_id = resolve_input(ctx, odel_id, "odelId")
    if deliverable_id is None:
        return None
    return Deliverable(
        id=deliverable_id,
        type=resolve_input(ctx, odel_type, "odelType"),
        digests=resolve_input(ctx, odel_digests, "odelDigests"),
        purl=resolve_input(ctx, odel_purl, "odelPurl"),
        build_id=resolve_input(ctx, odel_build_id, "odelBuildId"),
        build_uri=resolve_input(ctx, odel_build_uri, "odelBuildUri"),
        ci_meta=resolve_input(ctx, odel_ci_meta, "odelCiMeta"),
        artifacts_json=resolve_input(ctx, odel_arts_json, "odelArtsJson"),
    )


def finalize(
    ctx: typer.Context,
    api_key: str | None = API_KEY_OPTION,
    api_key_id: str | None = API_KEY_ID_OPTION,
    url: str | None = URL_OPTION,
    cli: str | None = CLI_OPTION,
    repo_path: str | None = REPO_PATH_OPTION,
    branch: str | None = typer.Option(
        None, "--branch", "-b", help="Branch name (default: Build.SourceBranchName)."
    ),
    version: str | None = typer.Option(
        None, "--version", "-v", help="Release version (default: REARM_FULL_VERSION)."
    ),
    lifecycle: str | None = typer.Option(
        None, "--lifecycle", help="ASSEMBLED (default) or REJECTED."
    ),
    run_on_condition: bool | None = typer.Option(
        None,
        "--run-on-condition/--always",
        help="Skip unless initialize recorded DO_BUILD=true (default).",
    ),
    odel_id: str | None = typer.Option(None, "--odel-id", help="Deliverable id."),
    odel_type: str | None = typer.Option(None, "--odel-type", help="Deliverable type."),
    odel_digests: str | None = typer.Option(None, "--odel-digests", help="Deliverable digests."),
    odel_purl: str | None = typer.Option(None, "--odel-purl", help="Deliverable package URL."),
    odel_build_id: str | None = typer.Option(
        None, "--odel-build-id", help="CI build id (default: azuredevops<Build.BuildNumber>)."
    ),
    odel_build_uri: str | None = typer.Option(
        None, "--odel-build-uri", help="CI build URI (default: Build.BuildUri)."
    ),
    odel_ci_meta: str | None = typer.Option(
        None, "--odel-ci-meta", help="CI metadata (default: azuredevops)."
    ),
    odel_arts_json: str | None = typer.Option(
        None, "--odel-arts-json", help="Deliverable artifacts JSON."
    ),
    source_artifacts: str | None = typer.Option(
        None, "--source-artifacts", help="Source code entry artifacts JSON."
    ),
    release_artifacts: str | None = typer.Option(
        None, "--release-artifacts", help="Release artifacts JSON."
    ),
) -> None:
    """Send the finished build to the registry and finalize the release."""
    cli_ctx = build_context(ctx)
    registry, repo = build_registry(
        cli_ctx, api_key=api_key, api_key_id=api_key_id, url=url, cli=cli, repo_path=repo_path
    )

    options = FinalizeOptions(
        lifecycle=resolve_input(cli_ctx, lifecycle, "lifecycle", cli_ctx.config.release.lifecycle)
        or cli_ctx.config.release.lifecycle,
        branch=resolve_input(cli_ctx, branch, "branch"),
        version=resolve_input(cli_ctx, version, "version"),
        run_on_condition=resolve_flag(cli_ctx, run_on_condition, "runOnCondition", True),
        deliverable=_deliverable(
            cli_ctx,
            odel_id=odel_id,
            odel_type=odel_type,
            odel_digests=odel_digests,
            odel_purl=odel_purl,
            odel_build_id=odel_build_id,
            odel_build_uri=odel_build_uri,
            odel_ci_meta=odel_ci_meta,
            odel_arts_json=odel_arts_json,
        ),
        artifacts=ReleaseArtifacts(
            source_artifacts=resolve_input(cli_ctx, source_artifacts, "sceArts"),
            release_artifacts=resolve_input(cli_ctx, release_artifacts, "releaseArts"),
        ),
    )
    outcome = exit_on_error(
        run_finalize(
            options,
            host=cli_ctx.host,
            repo=repo,
            registry=registry,
            console=cli_ctx.console,
        ),
        cli_ctx,
    )
    complete(cli_ctx, outcome.message)
