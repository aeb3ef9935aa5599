"""Console output abstraction.

Services log through ``ConsoleProtocol`` and never print directly. Three
backends exist:

- RichConsole: styled output for interactive terminals (Rich)
- PipelineConsole: plain lines with Azure Pipelines logging commands
  (``##[warning]``, ``##[error]``, ``##[section]``) so agents highlight them
- MockConsole: captures output for tests

Every backend masks registered secrets (the registry API key) before
anything is written.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol, TextIO

__all__ = [
    "Style",
    "ConsoleProtocol",
    "RichConsole",
    "PipelineConsole",
    "MockConsole",
    "SecretMasker",
]


class Style(Enum):
    """Text styles for console output."""

    DEFAULT = auto()
    SUCCESS = auto()
    ERROR = auto()
    WARNING = auto()
    INFO = auto()
    DIM = auto()
    HEADER = auto()

    def __str__(self) -> str:
        return self.name.lower()


class SecretMasker:
    """Replaces registered secret values with ``***``."""

    def __init__(self) -> None:
        self._secrets: set[str] = set()

    def add(self, value: str | None) -> None:
        # Very short values would mask unrelated text.
        if value and len(value.strip()) >= 4:
            self._secrets.add(value.strip())

    def mask(self, text: str) -> str:
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, "***")
        return text


class ConsoleProtocol(Protocol):
    """Protocol for console output."""

    def mask_secret(self, value: str | None) -> None:
        """Never show ``value`` in any later output."""
        ...

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        """Print a message with optional styling."""
        ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def header(self, message: str) -> None: ...


class RichConsole:
    """Console implementation using the Rich library."""

    def __init__(self, *, stderr: bool = False, masker: SecretMasker | None = None) -> None:
        from rich.console import Console

        self._console = Console(stderr=stderr, highlight=False)
        self._masker = masker or SecretMasker()
        self._style_map = {
            Style.DEFAULT: "",
            Style.SUCCESS: "green",
            Style.ERROR: "red bold",
            Style.WARNING: "yellow",
            Style.INFO: "cyan",
            Style.DIM: "dim",
            Style.HEADER: "blue bold",
        }

    def mask_secret(self, value: str | None) -> None:
        self._masker.add(value)

    def _emit(self, prefix: str, message: str, style: str = "") -> None:
        from rich.markup import escape

        text = escape(self._masker.mask(message))
        if style:
            self._console.print(f"{prefix}[{style}]{text}[/{style}]")
        else:
            self._console.print(f"{prefix}{text}")

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._emit("", message, self._style_map.get(style, ""))

    def success(self, message: str) -> None:
        self._emit("[green]OK[/green] ", message)

    def error(self, message: str) -> None:
        self._emit("[red bold]error:[/red bold] ", message)

    def warning(self, message: str) -> None:
        self._emit("[yellow]warning:[/yellow] ", message)

    def info(self, message: str) -> None:
        self._emit("[cyan]info:[/cyan] ", message)

    def header(self, message: str) -> None:
        self._console.print()
        self._emit("", message, "blue bold")


class PipelineConsole:
    """Plain console for CI agents, using Azure Pipelines log formatting."""

    def __init__(self, stream: TextIO | None = None, masker: SecretMasker | None = None) -> None:
        self._stream = stream
        self._masker = masker or SecretMasker()

    def mask_secret(self, value: str | None) -> None:
        self._masker.add(value)

    def _write(self, line: str) -> None:
        stream = self._stream or sys.stdout
        stream.write(self._masker.mask(line) + "\n")
        stream.flush()

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        if style == Style.HEADER:
            self.header(message)
        elif style == Style.DIM:
            self._write(f"##[debug]{message}")
        else:
            self._write(message)

    def success(self, message: str) -> None:
        self._write(message)

    def error(self, message: str) -> None:
        self._write(f"##[error]{message}")

    def warning(self, message: str) -> None:
        self._write(f"##[warning]{message}")

    def info(self, message: str) -> None:
        self._write(message)

    def header(self, message: str) -> None:
        self._write(f"##[section]{message}")


@dataclass
class OutputRecord:
    """A single output record for MockConsole."""

    message: str
    style: Style


def _empty_outputs() -> list[OutputRecord]:
    return []


@dataclass
class MockConsole:
    """Console implementation that captures output for testing."""

    outputs: list[OutputRecord] = field(default_factory=_empty_outputs)
    masker: SecretMasker = field(default_factory=SecretMasker)

    def mask_secret(self, value: str | None) -> None:
        self.masker.add(value)

    def _record(self, message: str, style: Style) -> None:
        self.outputs.append(OutputRecord(self.masker.mask(message), style))

    def print(self, message: str, style: Style = Style.DEFAULT) -> None:
        self._record(message, style)

    def success(self, message: str) -> None:
        self._record(f"OK {message}", Style.SUCCESS)

    def error(self, message: str) -> None:
        self._record(f"error: {message}", Style.ERROR)

    def warning(self, message: str) -> None:
        self._record(f"warning: {message}", Style.WARNING)

    def info(self, message: str) -> None:
        self._record(f"info: {message}", Style.INFO)

    def header(self, message: str) -> None:
        self._record(message, Style.HEADER)

    # Test helper methods

    @property
    def messages(self) -> list[str]:
        return [o.message for o in self.outputs]

    @property
    def text(self) -> str:
        return "\n".join(self.messages)

    def has_error(self) -> bool:
        return any(o.style == Style.ERROR for o in self.outputs)

    def has_warning(self) -> bool:
        return any(o.style == Style.WARNING for o in self.outputs)

    def find(self, substring: str) -> list[OutputRecord]:
        return [o for o in self.outputs if substring in o.message]
