"""Tests for rearm_ci.platform.process module."""

from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

from rearm_ci.core.result import Err, Ok
from rearm_ci.platform.process import ProcessError, ProcessOutput, run, run_streaming


class TestProcessError:
    def test_str_short_command(self) -> None:
        error = ProcessError(
            command=("git", "status"),
            returncode=1,
            stdout="",
            stderr="fatal: not a git repository",
        )
        assert str(error) == "git status failed (exit 1)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("rearm", "addrelease", "-k", "***", "--branch", "main"),
            returncode=3,
            stdout="",
            stderr="error",
        )
        assert str(error) == "rearm addrelease ... failed (exit 3)"

    def test_output_combines_streams(self) -> None:
        error = ProcessError(("cmd",), 1, "out\n", "err\n")
        assert error.output == "out\nerr"

    def test_frozen(self) -> None:
        error = ProcessError(("cmd",), 1, "", "")
        with pytest.raises(AttributeError):
            error.returncode = 2  # type: ignore[misc]


def test_process_output_combined() -> None:
    assert ProcessOutput(stdout="a", stderr="b").combined == "ab"


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert result.value.stdout.strip() == "hello"
        assert result.value.returncode == 0

    def test_failure_returns_error(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "import sys; sys.exit(42)"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == 42

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        # Error message varies by OS and locale
        assert len(result.error.stderr) > 0

    def test_captures_stderr(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import sys; sys.stderr.write('error msg'); sys.exit(1)"],
            cwd=tmp_path,
        )

        assert isinstance(result, Err)
        assert "error msg" in result.error.stderr

    def test_stderr_kept_on_success(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import sys; print('out'); sys.stderr.write('warn')"],
            cwd=tmp_path,
        )

        assert isinstance(result, Ok)
        assert result.value.combined.startswith("out")
        assert result.value.combined.endswith("warn")

    def test_uses_cwd(self, tmp_path: Path) -> None:
        (tmp_path / "marker.txt").write_text("content")

        result = run([sys.executable, "-c", "import os; print(os.listdir('.'))"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert "marker.txt" in result.value.stdout

    def test_timeout(self, tmp_path: Path) -> None:
        result = run(
            [sys.executable, "-c", "import time; time.sleep(5)"],
            cwd=tmp_path,
            timeout=0.2,
        )

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert "timed out" in result.error.stderr


class TestRunStreaming:
    def test_lines_forwarded_in_order(self, tmp_path: Path) -> None:
        seen: list[str] = []
        script = "import sys; print('one'); sys.stderr.write('two\\n'); sys.stderr.flush(); print('three')"
        result = run_streaming(
            [sys.executable, "-u", "-c", script], cwd=tmp_path, on_line=seen.append
        )

        assert isinstance(result, Ok)
        assert seen == ["one", "two", "three"]
        assert result.value.stdout == "one\ntwo\nthree\n"
        assert result.value.stderr == ""

    def test_failure_keeps_output(self, tmp_path: Path) -> None:
        seen: list[str] = []
        result = run_streaming(
            [sys.executable, "-c", "import sys; print('partial'); sys.exit(7)"],
            cwd=tmp_path,
            on_line=seen.append,
        )

        assert isinstance(result, Err)
        assert result.error.returncode == 7
        assert result.error.stdout == "partial\n"
        assert seen == ["partial"]

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run_streaming(["nonexistent_command_12345"], cwd=tmp_path, on_line=lambda _: None)

        assert isinstance(result, Err)
        assert result.error.returncode == -1

    def test_timeout_while_silent(self, tmp_path: Path) -> None:
        started = time.monotonic()
        result = run_streaming(
            [sys.executable, "-c", "import time; time.sleep(10)"],
            cwd=tmp_path,
            on_line=lambda _: None,
            timeout=0.3,
        )

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert "timed out" in result.error.stderr
        assert time.monotonic() - started < 5

    def test_timeout_keeps_lines_read_so_far(self, tmp_path: Path) -> None:
        seen: list[str] = []
        script = "print('started'); import time; time.sleep(10)"
        result = run_streaming(
            [sys.executable, "-u", "-c", script],
            cwd=tmp_path,
            on_line=seen.append,
            timeout=1.0,
        )

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert result.error.stdout == "started\n"
        assert seen == ["started"]

    def test_finishes_within_timeout(self, tmp_path: Path) -> None:
        result = run_streaming(
            [sys.executable, "-c", "print('ok')"],
            cwd=tmp_path,
            on_line=lambda _: None,
            timeout=30,
        )

        assert result == Ok(ProcessOutput(stdout="ok\n", stderr="", returncode=0))

    def test_error_command_is_argv_as_executed(self, tmp_path: Path) -> None:
        argv = [sys.executable, "-c", "import sys; sys.exit(3)", "-k", "s3cret"]
        result = run_streaming(argv, cwd=tmp_path, on_line=lambda _: None)

        assert isinstance(result, Err)
        assert result.error.command == tuple(argv)
        assert "s3cret" not in str(result.error)
