from __future__ import annotations

from pathlib import Path

import typer

from rearm_ci import __version__
from rearm_ci.cli.commands.finalize_cmd import finalize
from rearm_ci.cli.commands.initialize_cmd import evaluate, initialize
from rearm_ci.cli.commands.install_cmd import install
from rearm_ci.cli.commands.sync_cmd import sync_branches
from rearm_ci.cli.context import DEFAULT_STATE_FILE, GlobalOptions, HostKind


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command("sync-branches")(sync_branches)
app.command()(initialize)
app.command()(evaluate)
app.command()(finalize)
app.command("install-cli")(install)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_show_version, is_eager=True, help="Show version and exit."
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        envvar="REARM_CI_CONFIG",
        help="Config file (default: ./rearm.toml when present).",
    ),
    host: HostKind | None = typer.Option(
        None,
        "--host",
        case_sensitive=False,
        help="Pipeline host (default: azure on an Azure Pipelines agent, else local).",
    ),
    state_file: Path = typer.Option(
        DEFAULT_STATE_FILE,
        "--state-file",
        envvar="REARM_CI_STATE_FILE",
        help="Variable store for the local host.",
    ),
    plain: bool = typer.Option(False, "--plain", help="Plain output without colors."),
) -> None:
    """Release bookkeeping against a ReARM registry for CI pipelines."""
    ctx.obj = GlobalOptions(config_path=config, host=host, state_file=state_file, plain=plain)


def main() -> None:
    app()
