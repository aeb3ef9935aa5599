"""Tests for pipeline/host.py."""

from __future__ import annotations

import io
import json
from pathlib import Path

from rearm_ci.core.result import Err, Ok
from rearm_ci.pipeline.host import (
    AzurePipelinesHost,
    LocalHost,
    MockHost,
    input_env_name,
    variable_env_name,
)


def test_env_names() -> None:
    assert variable_env_name("Build.SourceVersion") == "BUILD_SOURCEVERSION"
    assert variable_env_name("Agent.TempDirectory") == "AGENT_TEMPDIRECTORY"
    assert input_env_name("rearmApiKey") == "INPUT_REARMAPIKEY"
    assert input_env_name("odel Id") == "INPUT_ODEL_ID"


class TestAzurePipelinesHost:
    def test_reads_variables_from_env(self) -> None:
        host = AzurePipelinesHost(env={"BUILD_SOURCEVERSION": " abc123 ", "EMPTY": "  "})
        assert host.get_variable("Build.SourceVersion") == "abc123"
        assert host.get_variable("Empty") is None
        assert host.get_variable("Missing.Var") is None

    def test_inputs(self) -> None:
        host = AzurePipelinesHost(env={"INPUT_BRANCH": "main"})
        assert host.get_input("branch") == Ok("main")
        assert host.get_input("version") == Ok(None)

    def test_missing_required_input(self) -> None:
        host = AzurePipelinesHost(env={})
        result = host.get_input("rearmApiKey", required=True)
        assert isinstance(result, Err)
        assert result.error.message == "Input required: rearmApiKey"

    def test_set_variable_writes_logging_command(self) -> None:
        stream = io.StringIO()
        host = AzurePipelinesHost(env={}, stream=stream)

        host.set_variable("DO_BUILD", "true")
        host.set_variable("DoBuild", "true", is_output=True)

        assert stream.getvalue().splitlines() == [
            "##vso[task.setvariable variable=DO_BUILD]true",
            "##vso[task.setvariable variable=DoBuild;isOutput=true]true",
        ]
        assert host.get_variable("DO_BUILD") == "true"

    def test_values_are_escaped(self) -> None:
        stream = io.StringIO()
        host = AzurePipelinesHost(env={}, stream=stream)

        host.set_variable("MSG", "50%\nline2")
        host.set_result(False, "failed\r\nhere")

        lines = stream.getvalue().splitlines()
        assert lines[0] == "##vso[task.setvariable variable=MSG]50%AZP25%0Aline2"
        assert lines[1] == "##vso[task.complete result=Failed;]failed%0D%0Ahere"

    def test_set_result_success(self) -> None:
        stream = io.StringIO()
        AzurePipelinesHost(env={}, stream=stream).set_result(True, "ok")
        assert stream.getvalue() == "##vso[task.complete result=Succeeded;]ok\n"

    def test_prepend_path(self, tmp_path: Path) -> None:
        stream = io.StringIO()
        AzurePipelinesHost(env={}, stream=stream).prepend_path(tmp_path)
        assert stream.getvalue() == f"##vso[task.prependpath]{tmp_path}\n"


class TestLocalHost:
    def test_load_missing_file_is_empty(self, tmp_path: Path) -> None:
        result = LocalHost.load(tmp_path / "state.json", env={})
        assert isinstance(result, Ok)
        assert result.value.variables == {}

    def test_save_then_load(self, tmp_path: Path) -> None:
        state_file = tmp_path / "nested" / "state.json"
        host = LocalHost(state_file, env={})
        host.set_variable("DO_BUILD", "true")
        host.set_variable("REARM_FULL_VERSION", "1.2.3", is_output=True)
        host.prepend_path(tmp_path / "bin")

        assert host.save() == Ok(None)

        data = json.loads(state_file.read_text(encoding="utf-8"))
        assert data["schema"] == 1
        assert data["path"] == [str(tmp_path / "bin")]

        loaded = LocalHost.load(state_file, env={})
        assert isinstance(loaded, Ok)
        assert loaded.value.get_variable("DO_BUILD") == "true"
        assert loaded.value.get_variable("REARM_FULL_VERSION") == "1.2.3"

    def test_variables_fall_back_to_env(self, tmp_path: Path) -> None:
        host = LocalHost(tmp_path / "s.json", env={"BUILD_SOURCEBRANCHNAME": "main"})
        assert host.get_variable("Build.SourceBranchName") == "main"
        host.set_variable("Build.SourceBranchName", "dev")
        assert host.get_variable("Build.SourceBranchName") == "dev"

    def test_inputs_from_env(self, tmp_path: Path) -> None:
        host = LocalHost(tmp_path / "s.json", env={"INPUT_LIFECYCLE": "REJECTED"})
        assert host.get_input("lifecycle") == Ok("REJECTED")

    def test_corrupt_state(self, tmp_path: Path) -> None:
        state_file = tmp_path / "state.json"
        state_file.write_text("{not json", encoding="utf-8")
        result = LocalHost.load(state_file, env={})
        assert isinstance(result, Err)
        assert result.error.hint == str(state_file)

    def test_unknown_schema(self, tmp_path: Path) -> None:
        state_file = tmp_path / "state.json"
        state_file.write_text(json.dumps({"schema": 99, "variables": {}}), encoding="utf-8")
        result = LocalHost.load(state_file, env={})
        assert isinstance(result, Err)
        assert "unsupported" in result.error.message

    def test_non_string_values_dropped(self, tmp_path: Path) -> None:
        state_file = tmp_path / "state.json"
        state_file.write_text(
            json.dumps({"schema": 1, "variables": {"A": "x", "B": 3}}), encoding="utf-8"
        )
        result = LocalHost.load(state_file, env={})
        assert isinstance(result, Ok)
        assert result.value.variables == {"A": "x"}

    def test_set_result(self, tmp_path: Path) -> None:
        host = LocalHost(tmp_path / "s.json", env={})
        host.set_result(False, "boom")
        assert host.result == (False, "boom")


class TestMockHost:
    def test_outputs_recorded_separately(self) -> None:
        host = MockHost()
        host.set_variable("A", "1")
        host.set_variable("B", "2", is_output=True)
        assert host.variables == {"A": "1", "B": "2"}
        assert host.outputs == {"B": "2"}

    def test_required_input(self) -> None:
        host = MockHost(inputs={"branch": "main"})
        assert host.get_input("branch", required=True) == Ok("main")
        assert isinstance(host.get_input("version", required=True), Err)
