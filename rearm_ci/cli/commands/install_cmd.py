from __future__ import annotations

from pathlib import Path

import typer

from rearm_ci.cli.commands._helpers import complete, exit_on_error, resolve_input
from rearm_ci.cli.context import build_context
from rearm_ci.platform.detection import detect_platform
from rearm_ci.services.cli_install import install_cli
from rearm_ci.services.release.timeouts import HTTP_TIMEOUT_SECONDS
from rearm_ci.tools.http import RealHttpClient


def install(
    ctx: typer.Context,
    cli_version: str | None = typer.Option(
        None, "--cli-version", help="rearm CLI version (default from rearm.toml or 25.10.10)."
    ),
    download_base: str | None = typer.Option(
        None, "--download-base", help="Base URL the CLI archives are published under."
    ),
    tools_dir: Path | None = typer.Option(
        None,
        "--tools-dir",
        help="Install location (default: Pipeline.Workspace, Agent.TempDirectory, or temp).",
    ),
) -> None:
    """Download, verify and install the rearm CLI."""
    cli_ctx = build_context(ctx)
    install_config = cli_ctx.config.install
    version = resolve_input(cli_ctx, cli_version, "rearmCliVersion", install_config.version)

    outcome = exit_on_error(
        install_cli(
            version=version or install_config.version,
            download_base=download_base or install_config.download_base,
            platform=detect_platform(),
            host=cli_ctx.host,
            http=RealHttpClient(timeout=HTTP_TIMEOUT_SECONDS),
            console=cli_ctx.console,
            tools_dir=tools_dir,
        ),
        cli_ctx,
    )
    complete(cli_ctx, f"Rearm CLI {outcome.version} installed successfully")
