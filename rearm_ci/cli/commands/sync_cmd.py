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
)
from rearm_ci.cli.context import build_context
from rearm_ci.services.release.stages import run_sync_branches


def sync_branches(
    ctx: typer.Context,
    api_key: str | None = API_KEY_OPTION,
    api_key_id: str | None = API_KEY_ID_OPTION,
    url: str | None = URL_OPTION,
    cli: str | None = CLI_OPTION,
    repo_path: str | None = REPO_PATH_OPTION,
) -> None:
    """Send the list of live remote branches to the registry."""
    cli_ctx = build_context(ctx)
    registry, repo = build_registry(
        cli_ctx, api_key=api_key, api_key_id=api_key_id, url=url, cli=cli, repo_path=repo_path
    )

    outcome = exit_on_error(
        run_sync_branches(host=cli_ctx.host, repo=repo, registry=registry, console=cli_ctx.console),
        cli_ctx,
    )
    if outcome.synced:
        complete(cli_ctx, "Branches synchronized successfully")
    else:
        complete(cli_ctx, f"Branch sync skipped: {outcome.reason}")
