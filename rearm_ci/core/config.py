"""Typed configuration loading and access.

An optional ``rearm.toml`` provides defaults below CLI options and
environment variables. Every table and key is optional.

    [registry]
    url = "https://demo.rearmhq.com"
    cli = "rearm"

    [repository]
    path = "."
    vcs_type = "git"

    [release]
    lifecycle = "ASSEMBLED"
    version_schema = "semver"
    feature_branch_version_schema = "Branch.Micro"
    create_component = false
    allow_rebuild = false
    sync_first = true

    [install]
    version = "25.10.10"
    download_base = "https://d7ge14utcyki8.cloudfront.net/rearm-download"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_str, get_table

__all__ = [
    "Config",
    "ConfigError",
    "InstallConfig",
    "RegistryConfig",
    "ReleaseConfig",
    "RepositoryConfig",
    "DEFAULT_CLI_VERSION",
    "DEFAULT_DOWNLOAD_BASE",
    "load_config",
]

DEFAULT_CLI_VERSION = "25.10.10"
DEFAULT_DOWNLOAD_BASE = "https://d7ge14utcyki8.cloudfront.net/rearm-download"
DEFAULT_CONFIG_NAME = "rearm.toml"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or a required value is missing."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    url: str | None = None
    cli: str = "rearm"


@dataclass(frozen=True, slots=True)
class RepositoryConfig:
    path: str = "."
    vcs_type: str = "git"


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    """Release defaults.

    ``sync_first`` controls whether branch synchronization runs before or
    after the build-necessity check during ``initialize``; the two stages
    share no data so either order is valid.
    """

    lifecycle: str = "ASSEMBLED"
    version_schema: str = "semver"
    feature_branch_version_schema: str | None = None
    create_component: bool = False
    allow_rebuild: bool = False
    sync_first: bool = True


@dataclass(frozen=True, slots=True)
class InstallConfig:
    version: str = DEFAULT_CLI_VERSION
    download_base: str = DEFAULT_DOWNLOAD_BASE


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    registry: RegistryConfig = field(default_factory=RegistryConfig)
    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    install: InstallConfig = field(default_factory=InstallConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        registry: StrDict = get_table(data, "registry") or {}
        repository: StrDict = get_table(data, "repository") or {}
        release: StrDict = get_table(data, "release") or {}
        install: StrDict = get_table(data, "install") or {}

        defaults = ReleaseConfig()
        return cls(
            registry=RegistryConfig(
                url=get_str(registry, "url"),
                cli=get_str(registry, "cli") or "rearm",
            ),
            repository=RepositoryConfig(
                path=get_str(repository, "path") or ".",
                vcs_type=get_str(repository, "vcs_type") or "git",
            ),
            release=ReleaseConfig(
                lifecycle=(get_str(release, "lifecycle") or defaults.lifecycle).upper(),
                version_schema=get_str(release, "version_schema") or defaults.version_schema,
                feature_branch_version_schema=get_str(release, "feature_branch_version_schema"),
                create_component=_bool_or(release, "create_component", defaults.create_component),
                allow_rebuild=_bool_or(release, "allow_rebuild", defaults.allow_rebuild),
                sync_first=_bool_or(release, "sync_first", defaults.sync_first),
            ),
            install=InstallConfig(
                version=get_str(install, "version") or DEFAULT_CLI_VERSION,
                download_base=(get_str(install, "download_base") or DEFAULT_DOWNLOAD_BASE).rstrip(
                    "/"
                ),
            ),
        )


def _bool_or(table: Mapping[str, object], key: str, default: bool) -> bool:
    value = get_bool(table, key)
    return default if value is None else value


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling import and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to rearm.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))
