"""Tests for rearm_ci.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from rearm_ci.core.config import (
    DEFAULT_CLI_VERSION,
    DEFAULT_DOWNLOAD_BASE,
    Config,
    ReleaseConfig,
    load_config,
)
from rearm_ci.core.result import Err, Ok


class TestDefaults:
    def test_release_defaults(self) -> None:
        release = ReleaseConfig()
        assert release.lifecycle == "ASSEMBLED"
        assert release.version_schema == "semver"
        assert release.feature_branch_version_schema is None
        assert release.create_component is False
        assert release.allow_rebuild is False
        assert release.sync_first is True

    def test_config_defaults(self) -> None:
        config = Config()
        assert config.registry.url is None
        assert config.registry.cli == "rearm"
        assert config.repository.path == "."
        assert config.repository.vcs_type == "git"
        assert config.install.version == DEFAULT_CLI_VERSION
        assert config.install.download_base == DEFAULT_DOWNLOAD_BASE

    def test_frozen(self) -> None:
        config = Config()
        with pytest.raises(AttributeError):
            config.registry = None  # type: ignore[misc,assignment]


class TestFromDict:
    def test_empty_mapping_gives_defaults(self) -> None:
        assert Config.from_dict({}) == Config()

    def test_full_mapping(self) -> None:
        config = Config.from_dict(
            {
                "registry": {"url": "https://demo.rearmhq.com", "cli": "/opt/rearm"},
                "repository": {"path": "services/api"},
                "release": {
                    "lifecycle": "rejected",
                    "version_schema": "calver",
                    "feature_branch_version_schema": "Branch.Micro",
                    "create_component": True,
                    "allow_rebuild": True,
                    "sync_first": False,
                },
                "install": {"version": "25.11.1", "download_base": "https://mirror.example/"},
            }
        )
        assert config.registry.url == "https://demo.rearmhq.com"
        assert config.registry.cli == "/opt/rearm"
        assert config.repository.path == "services/api"
        assert config.release.lifecycle == "REJECTED"
        assert config.release.version_schema == "calver"
        assert config.release.feature_branch_version_schema == "Branch.Micro"
        assert config.release.create_component is True
        assert config.release.allow_rebuild is True
        assert config.release.sync_first is False
        assert config.install.version == "25.11.1"
        assert config.install.download_base == "https://mirror.example"

    def test_wrong_types_fall_back_to_defaults(self) -> None:
        config = Config.from_dict(
            {"release": {"create_component": "yes", "lifecycle": 3}, "registry": "nope"}
        )
        assert config.release.create_component is False
        assert config.release.lifecycle == "ASSEMBLED"
        assert config.registry.url is None


class TestLoadConfig:
    def test_load_valid_file(self, tmp_path: Path) -> None:
        path = tmp_path / "rearm.toml"
        path.write_text(
            '[registry]\nurl = "https://demo.rearmhq.com"\n\n[release]\nsync_first = false\n',
            encoding="utf-8",
        )
        result = load_config(path)
        assert isinstance(result, Ok)
        assert result.value.registry.url == "https://demo.rearmhq.com"
        assert result.value.release.sync_first is False

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "missing.toml")
        assert isinstance(result, Err)
        assert "not found" in result.error.message
        assert result.error.path == tmp_path / "missing.toml"

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "rearm.toml"
        path.write_text("[registry\nurl = ", encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Err)
        assert "Invalid TOML" in result.error.message
