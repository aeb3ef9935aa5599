from __future__ import annotations

import hashlib
import json
import zipfile
from collections.abc import Sequence
from pathlib import Path

import pytest
from typer.testing import CliRunner

from rearm_ci import __version__
from rearm_ci.cli.app import app
from rearm_ci.core.result import Err, Ok, Result
from rearm_ci.git import repository as repository_mod
from rearm_ci.platform.detection import Platform
from rearm_ci.platform.process import ProcessError, ProcessOutput
from rearm_ci.services.release import registry as registry_mod
from rearm_ci.tools.http import MockHttpClient

Reply = Result[ProcessOutput, ProcessError]

runner = CliRunner()

LATEST = '{"sourceCodeEntryDetails": {"commit": "abc123"}}'


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    for name in ("TF_BUILD", "REARM_API_KEY", "REARM_API_KEY_ID", "REARM_URL", "REARM_CLI"):
        monkeypatch.delenv(name, raising=False)
    for name in ("REARM_CI_CONFIG", "REARM_CI_STATE_FILE", "INPUT_REARMAPIKEY"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


@pytest.fixture
def build_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUILD_REPOSITORY_URI", "https://dev.azure.com/org/proj/_git/app")
    monkeypatch.setenv("BUILD_SOURCEVERSION", "def456")
    monkeypatch.setenv("BUILD_SOURCEBRANCHNAME", "main")


def _global(workdir: Path) -> list[str]:
    return ["--host", "local", "--state-file", str(workdir / "state.json"), "--plain"]


def _credentials(workdir: Path) -> list[str]:
    cli = workdir / "rearm"
    cli.write_text("")
    return [
        "--api-key",
        "cli-secret-key",
        "--api-key-id",
        "key-id",
        "--url",
        "https://rearm.example",
        "--cli",
        str(cli),
    ]


def _state(workdir: Path) -> dict[str, str]:
    data = json.loads((workdir / "state.json").read_text(encoding="utf-8"))
    return data["variables"]


def _fake_tools(monkeypatch: pytest.MonkeyPatch, replies: dict[str, Reply]) -> list[str]:
    keys: list[str] = []

    def fake_run(cmd: Sequence[str], *, cwd: Path, timeout: float | None = None) -> Reply:
        del cwd
        del timeout
        argv = list(cmd)
        key = f"git {argv[3]}" if argv[0] == "git" else argv[1]
        keys.append(key)
        return replies.get(key, Err(ProcessError(tuple(argv), 1, "", f"unscripted: {key}")))

    monkeypatch.setattr(repository_mod, "run_process", fake_run)
    monkeypatch.setattr(registry_mod, "run_process", fake_run)
    return keys


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_missing_api_key(workdir: Path, build_env: None) -> None:
    result = runner.invoke(app, [*_global(workdir), "evaluate"])

    assert result.exit_code == 1
    assert "Input required: rearmApiKey" in result.output


def test_invalid_config(workdir: Path) -> None:
    (workdir / "rearm.toml").write_text("[registry\n", encoding="utf-8")

    result = runner.invoke(app, [*_global(workdir), "evaluate"])

    assert result.exit_code == 1
    assert "error:" in result.output


def test_corrupt_state_file(workdir: Path) -> None:
    (workdir / "state.json").write_text("{oops", encoding="utf-8")

    result = runner.invoke(app, [*_global(workdir), "evaluate"])

    assert result.exit_code == 5


def test_evaluate_writes_state(
    workdir: Path, build_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    keys = _fake_tools(
        monkeypatch,
        {
            "getlatestrelease": Ok(ProcessOutput(LATEST, "")),
            "git cat-file": Ok(ProcessOutput("", "")),
            "git diff": Ok(ProcessOutput("", "")),
        },
    )

    result = runner.invoke(app, [*_global(workdir), "evaluate", *_credentials(workdir)])

    assert result.exit_code == 0, result.output
    assert "No build needed" in result.output
    assert "cli-secret-key" not in result.output
    assert _state(workdir)["DO_BUILD"] == "false"
    assert _state(workdir)["LastCommit"] == "abc123"
    assert "getlatestrelease" in keys


def test_registry_failure_exit_code(
    workdir: Path, build_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    _fake_tools(
        monkeypatch,
        {
            "git branch": Ok(ProcessOutput("refs/remotes/origin/main\n", "")),
            "syncbranches": Err(
                ProcessError(("rearm",), 2, "", "401 for key cli-secret-key")
            ),
        },
    )

    result = runner.invoke(app, [*_global(workdir), "sync-branches", *_credentials(workdir)])

    assert result.exit_code == 3
    assert "rearm syncbranches failed with exit code 2" in result.output
    assert "cli-secret-key" not in result.output


def test_finalize_skipped_without_build(
    workdir: Path, build_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    keys = _fake_tools(monkeypatch, {})

    result = runner.invoke(app, [*_global(workdir), "finalize", *_credentials(workdir)])

    assert result.exit_code == 0, result.output
    assert "Skipped - DO_BUILD is not true" in result.output
    assert keys == []


def test_finalize_invalid_lifecycle(
    workdir: Path, build_env: None, monkeypatch: pytest.MonkeyPatch
) -> None:
    _fake_tools(monkeypatch, {})

    result = runner.invoke(
        app,
        [
            *_global(workdir),
            "finalize",
            *_credentials(workdir),
            "--always",
            "--lifecycle",
            "FINALIZED",
        ],
    )

    assert result.exit_code == 1
    assert "invalid lifecycle" in result.output


def test_install_cli(workdir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import rearm_ci.cli.commands.install_cmd as install_cmd

    archive = workdir / "build.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("rearm", b"#!/bin/sh\n")
    data = archive.read_bytes()
    base = "https://downloads.example/rearm/1.2.3"
    http = MockHttpClient()
    http.set_text(
        f"{base}/sha256sums.txt",
        f"{hashlib.sha256(data).hexdigest()}  rearm-1.2.3-linux-amd64.zip\n",
    )
    http.set_download(f"{base}/rearm-1.2.3-linux-amd64.zip", data)

    monkeypatch.setattr(install_cmd, "RealHttpClient", lambda timeout: http)
    monkeypatch.setattr(install_cmd, "detect_platform", lambda: Platform.LINUX)

    result = runner.invoke(
        app,
        [
            *_global(workdir),
            "install-cli",
            "--cli-version",
            "1.2.3",
            "--download-base",
            "https://downloads.example/rearm",
            "--tools-dir",
            str(workdir / "tools"),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Rearm CLI 1.2.3 installed successfully" in result.output
    assert _state(workdir)["RearmCli"] == str(workdir / "tools" / "rearm-cli" / "1.2.3" / "rearm")
