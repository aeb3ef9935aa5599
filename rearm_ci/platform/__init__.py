"""Platform layer: process execution, command building, OS detection."""

from .command import Command
from .detection import Platform, detect_platform
from .process import ProcessError, ProcessOutput, run, run_streaming

__all__ = [
    "Command",
    "Platform",
    "ProcessError",
    "ProcessOutput",
    "detect_platform",
    "run",
    "run_streaming",
]
