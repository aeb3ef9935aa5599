"""Pipeline host adapters.

A host carries variables between pipeline steps and receives the final
step result. Two real hosts exist:

- AzurePipelinesHost: reads variables from the agent environment and
  publishes outputs with ``##vso[...]`` logging commands on stdout.
- LocalHost: keeps variables in a JSON state file so local runs of
  separate stages can hand state to each other.

MockHost records everything for tests.
"""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, TextIO

from rearm_ci.core.result import Err, Ok, Result
from rearm_ci.core.structured import as_str_dict

__all__ = [
    "AzurePipelinesHost",
    "HostError",
    "HostProtocol",
    "LocalHost",
    "MockHost",
    "input_env_name",
    "variable_env_name",
]

_STATE_SCHEMA = 1


@dataclass(frozen=True, slots=True)
class HostError:
    message: str
    hint: str | None = None


class HostProtocol(Protocol):
    """What the release stages need from the CI runtime."""

    def get_input(self, name: str, *, required: bool = False) -> Result[str | None, HostError]:
        """Return a task input; a missing required input is an error."""
        ...

    def get_variable(self, name: str) -> str | None:
        """Return a non-empty variable value, or None."""
        ...

    def set_variable(self, name: str, value: str, *, is_output: bool = False) -> None: ...

    def set_result(self, succeeded: bool, message: str) -> None: ...

    def prepend_path(self, directory: Path) -> None: ...


def variable_env_name(name: str) -> str:
    """Environment form of a pipeline variable: ``Build.SourceVersion`` -> ``BUILD_SOURCEVERSION``."""
    return name.replace(".", "_").replace(" ", "_").upper()


def input_env_name(name: str) -> str:
    """Environment form of a task input: ``rearmApiKey`` -> ``INPUT_REARMAPIKEY``."""
    return "INPUT_" + name.replace(" ", "_").upper()


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    s = value.strip()
    return s or None


def _required(name: str, value: str | None, required: bool) -> Result[str | None, HostError]:
    if required and value is None:
        return Err(HostError(message=f"Input required: {name}"))
    return Ok(value)


class AzurePipelinesHost:
    """Host backed by the Azure Pipelines agent."""

    def __init__(
        self,
        env: Mapping[str, str] | None = None,
        stream: TextIO | None = None,
    ) -> None:
        self._env = env if env is not None else os.environ
        self._stream = stream
        # Variables set in this process are visible to later reads here;
        # the agent only exposes them to the next step.
        self._local: dict[str, str] = {}

    def _command(self, line: str) -> None:
        stream = self._stream or sys.stdout
        stream.write(line + "\n")
        stream.flush()

    def get_input(self, name: str, *, required: bool = False) -> Result[str | None, HostError]:
        return _required(name, _clean(self._env.get(input_env_name(name))), required)

    def get_variable(self, name: str) -> str | None:
        if name in self._local:
            return _clean(self._local[name])
        return _clean(self._env.get(variable_env_name(name)))

    def set_variable(self, name: str, value: str, *, is_output: bool = False) -> None:
        self._local[name] = value
        props = f"variable={_escape_property(name)}"
        if is_output:
            props += ";isOutput=true"
        self._command(f"##vso[task.setvariable {props}]{_escape_data(value)}")

    def set_result(self, succeeded: bool, message: str) -> None:
        result = "Succeeded" if succeeded else "Failed"
        self._command(f"##vso[task.complete result={result};]{_escape_data(message)}")

    def prepend_path(self, directory: Path) -> None:
        self._command(f"##vso[task.prependpath]{_escape_data(str(directory))}")


def _escape_data(value: str) -> str:
    return value.replace("%", "%AZP25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(value: str) -> str:
    return _escape_data(value).replace("]", "%5D").replace(";", "%3B")


class LocalHost:
    """Host that persists variables to a JSON state file.

    Reads fall back to the environment (same naming as the agent) so
    ``BUILD_SOURCEVERSION=... rearm-ci initialize`` works locally.
    Call ``save()`` once the stage is done.
    """

    def __init__(
        self,
        state_file: Path,
        variables: dict[str, str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self.state_file = state_file
        self._variables: dict[str, str] = dict(variables or {})
        self._env = env if env is not None else os.environ
        self._paths: list[str] = []
        self.result: tuple[bool, str] | None = None

    @classmethod
    def load(cls, state_file: Path, env: Mapping[str, str] | None = None) -> Result[LocalHost, HostError]:
        if not state_file.exists():
            return Ok(cls(state_file, env=env))

        try:
            obj: object = json.loads(state_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            return Err(HostError(message=f"failed to load pipeline state: {e}", hint=str(state_file)))

        data = as_str_dict(obj)
        if data is None or data.get("schema") != _STATE_SCHEMA:
            return Err(
                HostError(message="unsupported pipeline state format", hint=str(state_file))
            )

        raw = as_str_dict(data.get("variables")) or {}
        variables = {k: v for k, v in raw.items() if isinstance(v, str)}
        return Ok(cls(state_file, variables=variables, env=env))

    def get_input(self, name: str, *, required: bool = False) -> Result[str | None, HostError]:
        return _required(name, _clean(self._env.get(input_env_name(name))), required)

    def get_variable(self, name: str) -> str | None:
        if name in self._variables:
            return _clean(self._variables[name])
        return _clean(self._env.get(variable_env_name(name)))

    def set_variable(self, name: str, value: str, *, is_output: bool = False) -> None:
        self._variables[name] = value

    def set_result(self, succeeded: bool, message: str) -> None:
        self.result = (succeeded, message)

    def prepend_path(self, directory: Path) -> None:
        self._paths.append(str(directory))

    @property
    def variables(self) -> dict[str, str]:
        return dict(self._variables)

    def save(self) -> Result[None, HostError]:
        payload: dict[str, object] = {
            "schema": _STATE_SCHEMA,
            "variables": dict(sorted(self._variables.items())),
        }
        if self._paths:
            payload["path"] = list(self._paths)
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.state_file.with_suffix(self.state_file.suffix + ".tmp")
            tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
            tmp.replace(self.state_file)
        except OSError as e:
            return Err(
                HostError(message=f"failed to write pipeline state: {e}", hint=str(self.state_file))
            )
        return Ok(None)


def _empty_str_dict() -> dict[str, str]:
    return {}


@dataclass
class MockHost:
    """Host that records variables, outputs and the result for tests."""

    inputs: dict[str, str] = field(default_factory=_empty_str_dict)
    variables: dict[str, str] = field(default_factory=_empty_str_dict)
    outputs: dict[str, str] = field(default_factory=_empty_str_dict)
    paths: list[Path] = field(default_factory=list)
    result: tuple[bool, str] | None = None

    def get_input(self, name: str, *, required: bool = False) -> Result[str | None, HostError]:
        return _required(name, _clean(self.inputs.get(name)), required)

    def get_variable(self, name: str) -> str | None:
        return _clean(self.variables.get(name))

    def set_variable(self, name: str, value: str, *, is_output: bool = False) -> None:
        self.variables[name] = value
        if is_output:
            self.outputs[name] = value

    def set_result(self, succeeded: bool, message: str) -> None:
        self.result = (succeeded, message)

    def prepend_path(self, directory: Path) -> None:
        self.paths.append(directory)
