from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import typer

from rearm_ci.core.config import DEFAULT_CONFIG_NAME, Config, load_config
from rearm_ci.core.errors import ErrorCode
from rearm_ci.core.result import Err
from rearm_ci.output.console import ConsoleProtocol, PipelineConsole, RichConsole, SecretMasker
from rearm_ci.pipeline.host import AzurePipelinesHost, HostProtocol, LocalHost

DEFAULT_STATE_FILE = Path(".rearm-ci") / "state.json"


class HostKind(str, Enum):
    AZURE = "azure"
    LOCAL = "local"


@dataclass(frozen=True, slots=True)
class GlobalOptions:
    config_path: Path | None = None
    host: HostKind | None = None
    state_file: Path = DEFAULT_STATE_FILE
    plain: bool = False


@dataclass(frozen=True, slots=True)
class CLIContext:
    config: Config
    host: HostProtocol
    console: ConsoleProtocol
    masker: SecretMasker
    # Set when variables must be written back to the state file.
    local_host: LocalHost | None = None


def _running_on_agent() -> bool:
    return os.environ.get("TF_BUILD", "").lower() == "true"


def _load_config(options: GlobalOptions) -> Config:
    path = options.config_path
    if path is None:
        default = Path(DEFAULT_CONFIG_NAME)
        if not default.is_file():
            return Config()
        path = default

    result = load_config(path)
    if isinstance(result, Err):
        typer.echo(f"error: {result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))
    return result.value


def build_context(typer_ctx: typer.Context) -> CLIContext:
    options = typer_ctx.obj if isinstance(typer_ctx.obj, GlobalOptions) else GlobalOptions()
    config = _load_config(options)
    masker = SecretMasker()

    kind = options.host or (HostKind.AZURE if _running_on_agent() else HostKind.LOCAL)
    if kind == HostKind.AZURE:
        return CLIContext(
            config=config,
            host=AzurePipelinesHost(),
            console=PipelineConsole(masker=masker),
            masker=masker,
        )

    loaded = LocalHost.load(options.state_file)
    if isinstance(loaded, Err):
        typer.echo(f"error: {loaded.error.message}", err=True)
        if loaded.error.hint:
            typer.echo(f"hint: {loaded.error.hint}", err=True)
        raise typer.Exit(code=int(ErrorCode.IO_ERROR))

    console: ConsoleProtocol = (
        PipelineConsole(masker=masker) if options.plain else RichConsole(masker=masker)
    )
    return CLIContext(
        config=config,
        host=loaded.value,
        console=console,
        masker=masker,
        local_host=loaded.value,
    )
