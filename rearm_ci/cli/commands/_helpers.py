"""Shared helpers for CLI commands.

Values resolve in this order: CLI option (or its ``REARM_*`` environment
variable), host task input (``INPUT_<NAME>`` on the agent), ``rearm.toml``,
built-in default.
"""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn, TypeVar

import typer

from rearm_ci.cli.context import CLIContext
from rearm_ci.core.errors import ErrorCode
from rearm_ci.core.result import Err, Result
from rearm_ci.git.repository import Repository
from rearm_ci.output.console import Style
from rearm_ci.pipeline.state import Keys
from rearm_ci.services.release.errors import ReleaseError, ReleaseErrorKind
from rearm_ci.services.release.registry import RegistryClient, RegistryCredentials

_KIND_CODES: dict[ReleaseErrorKind, ErrorCode] = {
    "config_missing": ErrorCode.USER_ERROR,
    "invalid_lifecycle": ErrorCode.USER_ERROR,
    "vcs_failed": ErrorCode.VCS_ERROR,
    "registry_failed": ErrorCode.REGISTRY_ERROR,
    "registry_reply_invalid": ErrorCode.REGISTRY_ERROR,
    "cli_missing": ErrorCode.REGISTRY_ERROR,
    "download_failed": ErrorCode.NETWORK_ERROR,
    "checksum_mismatch": ErrorCode.NETWORK_ERROR,
    "install_failed": ErrorCode.IO_ERROR,
    "state_failed": ErrorCode.IO_ERROR,
}

T = TypeVar("T")
E = TypeVar("E")

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})

# Shared registry options
API_KEY_OPTION = typer.Option(None, "--api-key", envvar="REARM_API_KEY", help="Registry API key.")
API_KEY_ID_OPTION = typer.Option(
    None, "--api-key-id", envvar="REARM_API_KEY_ID", help="Registry API key id."
)
URL_OPTION = typer.Option(None, "--url", envvar="REARM_URL", help="Registry URL.")
CLI_OPTION = typer.Option(None, "--cli", envvar="REARM_CLI", help="rearm executable.")
REPO_PATH_OPTION = typer.Option(None, "--repo-path", help="Repository path (default: .).")


def error_code_for(error: object) -> ErrorCode:
    if isinstance(error, ReleaseError):
        return _KIND_CODES.get(error.kind, ErrorCode.USER_ERROR)
    return ErrorCode.USER_ERROR


def _save_state(ctx: CLIContext) -> bool:
    if ctx.local_host is None:
        return True
    saved = ctx.local_host.save()
    if isinstance(saved, Err):
        ctx.console.error(saved.error.message)
        if saved.error.hint:
            ctx.console.print(f"hint: {saved.error.hint}", Style.DIM)
        return False
    return True


def fail(
    ctx: CLIContext,
    message: str,
    *,
    hint: str | None = None,
    code: ErrorCode = ErrorCode.USER_ERROR,
) -> NoReturn:
    ctx.console.error(message)
    if hint:
        ctx.console.print(f"hint: {hint}", Style.DIM)
    ctx.host.set_result(False, ctx.masker.mask(message))
    _save_state(ctx)
    raise typer.Exit(code=int(code))


def exit_on_error(
    result: Result[T, E],
    ctx: CLIContext,
    error_code: ErrorCode | None = None,
) -> T:
    """Return the Ok value; report an Err to the console and the host, then exit.

    Expects error objects to have 'message' and optional 'hint' attributes.
    """
    if isinstance(result, Err):
        error = result.error
        message: str = getattr(error, "message", str(error))
        hint: str | None = getattr(error, "hint", None)
        fail(ctx, message, hint=hint, code=error_code or error_code_for(error))
    return result.value


def complete(ctx: CLIContext, message: str) -> None:
    """Report success to the host and persist local state."""
    ctx.host.set_result(True, message)
    if not _save_state(ctx):
        raise typer.Exit(code=int(ErrorCode.IO_ERROR))
    ctx.console.success(message)


def resolve_input(
    ctx: CLIContext,
    value: str | None,
    input_name: str,
    default: str | None = None,
) -> str | None:
    if value is not None and value.strip():
        return value.strip()
    from_host = ctx.host.get_input(input_name).unwrap_or(None)
    return from_host or default


def require_input(
    ctx: CLIContext,
    value: str | None,
    input_name: str,
    *,
    option: str,
    default: str | None = None,
) -> str:
    resolved = resolve_input(ctx, value, input_name, default)
    if resolved is None:
        fail(ctx, f"Input required: {input_name}", hint=f"pass {option}")
    return resolved


def resolve_flag(ctx: CLIContext, value: bool | None, input_name: str, default: bool) -> bool:
    if value is not None:
        return value
    raw = resolve_input(ctx, None, input_name)
    if raw is None:
        return default
    return raw.lower() in _TRUE_VALUES


def build_registry(
    ctx: CLIContext,
    *,
    api_key: str | None,
    api_key_id: str | None,
    url: str | None,
    cli: str | None,
    repo_path: str | None,
) -> tuple[RegistryClient, Repository]:
    """Registry client and repository; exits when credentials are missing."""
    key = require_input(ctx, api_key, "rearmApiKey", option="--api-key or REARM_API_KEY")
    ctx.masker.add(key)
    key_id = require_input(ctx, api_key_id, "rearmApiKeyId", option="--api-key-id")
    registry_url = require_input(
        ctx, url, "rearmUrl", option="--url", default=ctx.config.registry.url
    )
    path = resolve_input(ctx, repo_path, "repoPath", ctx.config.repository.path) or "."
    executable = (
        (cli or "").strip()
        or ctx.host.get_variable(Keys.CLI_PATH)
        or ctx.config.registry.cli
    )

    registry = RegistryClient(
        cli=executable,
        credentials=RegistryCredentials(api_key=key, key_id=key_id, url=registry_url),
        repo_path=path,
        console=ctx.console,
        vcs_type=ctx.config.repository.vcs_type,
    )
    return registry, Repository(Path(path))
