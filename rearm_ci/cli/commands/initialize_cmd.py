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
from rearm_ci.services.release.model import ComponentOptions
from rearm_ci.services.release.stages import InitializeOptions, run_evaluate, run_initialize

BRANCH_OPTION = typer.Option(
    None, "--branch", "-b", help="Branch name (default: Build.SourceBranchName)."
)
UP_TO_VERSION_OPTION = typer.Option(
    None, "--up-to-version", help="Only consider releases up to this version."
)


def _component_options(
    ctx: CLIContext,
    *,
    create_component: bool | None,
    version_schema: str | None,
    feature_branch_version_schema: str | None,
    allow_rebuild: bool | None,
) -> ComponentOptions:
    release = ctx.config.release
    return ComponentOptions(
        create_component=resolve_flag(
            ctx, create_component, "createComponent", release.create_component
        ),
        version_schema=resolve_input(ctx, version_schema, "versionSchema", release.version_schema)
        or release.version_schema,
        feature_branch_version_schema=resolve_input(
            ctx,
            feature_branch_version_schema,
            "featureBranchVersionSchema",
            release.feature_branch_version_schema,
        ),
        allow_rebuild=resolve_flag(ctx, allow_rebuild, "allowRebuild", release.allow_rebuild),
    )


def initialize(
    ctx: typer.Context,
    api_key: str | None = API_KEY_OPTION,
    api_key_id: str | None = API_KEY_ID_OPTION,
    url: str | None = URL_OPTION,
    cli: str | None = CLI_OPTION,
    repo_path: str | None = REPO_PATH_OPTION,
    branch: str | None = BRANCH_OPTION,
    version: str | None = typer.Option(
        None, "--version", "-v", help="Explicit version (skips registry versioning)."
    ),
    up_to_version: str | None = UP_TO_VERSION_OPTION,
    create_component: bool | None = typer.Option(
        None,
        "--create-component/--no-create-component",
        help="Let the registry create the component on first use.",
    ),
    version_schema: str | None = typer.Option(
        None, "--version-schema", help="Version schema for a created component (default: semver)."
    ),
    feature_branch_version_schema: str | None = typer.Option(
        None, "--feature-branch-version-schema", help="Feature branch version schema."
    ),
    allow_rebuild: bool | None = typer.Option(
        None, "--allow-rebuild/--no-allow-rebuild", help="Allow rebuilding an existing version."
    ),
    sync_first: bool | None = typer.Option(
        None,
        "--sync-first/--sync-last",
        help="Sync branches before (default) or after the build decision.",
    ),
) -> None:
    """Decide whether to build and create the PENDING release."""
    cli_ctx = build_context(ctx)
    registry, repo = build_registry(
        cli_ctx, api_key=api_key, api_key_id=api_key_id, url=url, cli=cli, repo_path=repo_path
    )

    options = InitializeOptions(
        branch=resolve_input(cli_ctx, branch, "branch"),
        explicit_version=resolve_input(cli_ctx, version, "version"),
        up_to_version=resolve_input(cli_ctx, up_to_version, "upToVersion"),
        component=_component_options(
            cli_ctx,
            create_component=create_component,
            version_schema=version_schema,
            feature_branch_version_schema=feature_branch_version_schema,
            allow_rebuild=allow_rebuild,
        ),
        sync_first=resolve_flag(
            cli_ctx, sync_first, "syncFirst", cli_ctx.config.release.sync_first
        ),
    )
    outcome = exit_on_error(
        run_initialize(
            options,
            host=cli_ctx.host,
            repo=repo,
            registry=registry,
            console=cli_ctx.console,
        ),
        cli_ctx,
    )
    complete(cli_ctx, outcome.message)


def evaluate(
    ctx: typer.Context,
    api_key: str | None = API_KEY_OPTION,
    api_key_id: str | None = API_KEY_ID_OPTION,
    url: str | None = URL_OPTION,
    cli: str | None = CLI_OPTION,
    repo_path: str | None = REPO_PATH_OPTION,
    branch: str | None = BRANCH_OPTION,
    up_to_version: str | None = UP_TO_VERSION_OPTION,
) -> None:
    """Only decide whether a build is needed; nothing is sent to the registry."""
    cli_ctx = build_context(ctx)
    registry, repo = build_registry(
        cli_ctx, api_key=api_key, api_key_id=api_key_id, url=url, cli=cli, repo_path=repo_path
    )

    options = InitializeOptions(
        branch=resolve_input(cli_ctx, branch, "branch"),
        up_to_version=resolve_input(cli_ctx, up_to_version, "upToVersion"),
    )
    decision = exit_on_error(
        run_evaluate(
            options,
            host=cli_ctx.host,
            repo=repo,
            registry=registry,
            console=cli_ctx.console,
        ),
        cli_ctx,
    )
    complete(cli_ctx, "Build needed" if decision.do_build else "No build needed")
