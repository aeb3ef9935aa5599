"""Subprocess execution with Result-based error handling.

This is the only module that spawns processes. Both git and the rearm CLI
go through ``run`` (captured) or ``run_streaming`` (echoed line by line
while captured). Neither retries; callers own the retry policy.

Usage:
    result = run(["git", "rev-parse", "HEAD"], cwd=Path("."))
    match result:
        case Ok(out):
            print(out.stdout)
        case Err(error):
            print(f"Failed: {error.output}")
"""

from __future__ import annotations

import queue
import subprocess
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from rearm_ci.core.result import Err, Ok, Result

__all__ = ["ProcessError", "ProcessOutput", "run", "run_streaming"]

# Reader thread grace period after a kill; a grandchild may still hold the pipe.
_READER_JOIN_SECONDS = 1.0


@dataclass(frozen=True, slots=True)
class ProcessOutput:
    """Captured output of a finished process."""

    stdout: str
    stderr: str
    returncode: int = 0

    @property
    def combined(self) -> str:
        """stdout followed by stderr, the way the registry reply is parsed."""
        return self.stdout + self.stderr


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The argv exactly as executed. It may hold secrets; callers
            mask before displaying it (``str()`` shows only the first two
            elements).
        returncode: The exit code of the process, -1 if it never ran to exit.
        stdout: Standard output (may be empty).
        stderr: Standard error (contains error details).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        """Combined stdout+stderr for diagnostics."""
        return (self.stdout + self.stderr).strip()

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:2])
        if len(self.command) > 2:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"


def run(
    cmd: Sequence[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[ProcessOutput, ProcessError]:
    """Execute a command and capture its output.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Environment variables (uses current env if None).
        timeout: Maximum seconds to wait (None for no limit).

    Returns:
        Ok(ProcessOutput) on exit 0, Err(ProcessError) otherwise.
    """
    argv = tuple(cmd)
    try:
        proc = subprocess.run(
            list(argv),
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        return Err(
            ProcessError(
                command=argv,
                returncode=-1,
                stdout=e.stdout if isinstance(e.stdout, str) else "",
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(ProcessError(command=argv, returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=argv,
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )

    return Ok(ProcessOutput(stdout=proc.stdout, stderr=proc.stderr, returncode=0))


def _pump(stream: IO[str], pending: queue.Queue[str | None]) -> None:
    for line in stream:
        pending.put(line)
    pending.put(None)


def run_streaming(
    cmd: Sequence[str],
    cwd: Path,
    *,
    on_line: Callable[[str], None],
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> Result[ProcessOutput, ProcessError]:
    """Execute a command, forwarding each output line while capturing it.

    stderr is merged into stdout so the captured text keeps the order in
    which the process wrote it. ``ProcessOutput.stderr`` is always empty.

    A reader thread drains the pipe; ``on_line`` runs on the calling thread.
    The timeout covers the whole run, silent stretches included. On expiry
    the process is killed and the lines read so far are kept in the error.
    """
    argv = tuple(cmd)
    lines: list[str] = []
    deadline = None if timeout is None else time.monotonic() + timeout

    def remaining() -> float | None:
        return None if deadline is None else max(0.0, deadline - time.monotonic())

    def timed_out(proc: subprocess.Popen[str], reader: threading.Thread) -> ProcessError:
        proc.kill()
        proc.wait()
        reader.join(timeout=_READER_JOIN_SECONDS)
        return ProcessError(
            command=argv,
            returncode=-1,
            stdout="".join(lines),
            stderr=f"Command timed out after {timeout}s",
        )

    try:
        with subprocess.Popen(
            list(argv),
            cwd=str(cwd),
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
        ) as proc:
            assert proc.stdout is not None
            pending: queue.Queue[str | None] = queue.Queue()
            reader = threading.Thread(target=_pump, args=(proc.stdout, pending), daemon=True)
            reader.start()

            while True:
                try:
                    line = pending.get(timeout=remaining())
                except queue.Empty:
                    return Err(timed_out(proc, reader))
                if line is None:
                    break
                lines.append(line)
                on_line(line.rstrip("\r\n"))

            try:
                returncode = proc.wait(timeout=remaining())
            except subprocess.TimeoutExpired:
                return Err(timed_out(proc, reader))
    except OSError as e:
        return Err(ProcessError(command=argv, returncode=-1, stdout="", stderr=str(e)))

    stdout = "".join(lines)
    if returncode != 0:
        return Err(ProcessError(command=argv, returncode=returncode, stdout=stdout, stderr=""))
    return Ok(ProcessOutput(stdout=stdout, stderr="", returncode=0))
