"""Output abstraction layer."""

from .console import (
    ConsoleProtocol,
    MockConsole,
    PipelineConsole,
    RichConsole,
    SecretMasker,
    Style,
)

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "PipelineConsole",
    "RichConsole",
    "SecretMasker",
    "Style",
]
