"""Command builder.

A ``Command`` accumulates an ordered argument list and hands it out as an
immutable tuple. Execution lives in ``rearm_ci.platform.process``; the same
command can be run captured or streamed without rebuilding it.

Usage:
    cmd = Command("rearm", "addrelease").secret("-k", api_key).opt("--branch", "main")
    run_process(cmd.argv, cwd=repo)
    console.print(cmd.display())   # -k ***
"""

from __future__ import annotations

from collections.abc import Iterable

__all__ = ["Command", "MASK"]

MASK = "***"


class Command:
    """Ordered argv builder with secret-aware display."""

    def __init__(self, executable: str, *args: str) -> None:
        self._argv: list[str] = [executable, *args]
        self._secret_positions: set[int] = set()

    @property
    def argv(self) -> tuple[str, ...]:
        return tuple(self._argv)

    @property
    def executable(self) -> str:
        return self._argv[0]

    @property
    def secrets(self) -> tuple[str, ...]:
        """Secret values carried by this command, for log masking."""
        return tuple(self._argv[i] for i in sorted(self._secret_positions))

    def arg(self, *values: str) -> Command:
        self._argv.extend(values)
        return self

    def opt(self, flag: str, value: str) -> Command:
        self._argv.extend((flag, value))
        return self

    def opt_if(self, flag: str, value: str | None) -> Command:
        """Append ``flag value`` only when value is a non-empty string."""
        if value:
            self._argv.extend((flag, value))
        return self

    def flag_if(self, flag: str, enabled: bool) -> Command:
        if enabled:
            self._argv.append(flag)
        return self

    def secret(self, flag: str, value: str) -> Command:
        self._argv.append(flag)
        self._secret_positions.add(len(self._argv))
        self._argv.append(value)
        return self

    def extend(self, pairs: Iterable[tuple[str, str]]) -> Command:
        for flag, value in pairs:
            self.opt(flag, value)
        return self

    def display_argv(self) -> tuple[str, ...]:
        return tuple(
            MASK if i in self._secret_positions else value for i, value in enumerate(self._argv)
        )

    def display(self) -> str:
        return " ".join(self.display_argv())

    def __repr__(self) -> str:
        return f"Command({self.display()!r})"
