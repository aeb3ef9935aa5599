"""Platform detection.

Only what the CLI installer needs: which archive to download and how the
executable is named.
"""

from __future__ import annotations

import platform as _platform
import sys as _sys
from enum import Enum, auto
from functools import lru_cache

__all__ = ["Platform", "detect_platform"]


class Platform(Enum):
    """Operating system platform."""

    LINUX = auto()
    MACOS = auto()
    WINDOWS = auto()
    UNKNOWN = auto()

    def __str__(self) -> str:
        return self.name.lower()

    @property
    def is_windows(self) -> bool:
        return self == Platform.WINDOWS

    @property
    def exe_suffix(self) -> str:
        return ".exe" if self == Platform.WINDOWS else ""

    def exe_name(self, name: str) -> str:
        """Example: exe_name("rearm") -> "rearm.exe" on Windows."""
        return f"{name}{self.exe_suffix}"

    @property
    def download_suffix(self) -> str | None:
        """Archive suffix published for the rearm CLI, None if unsupported."""
        match self:
            case Platform.LINUX:
                return "linux-amd64"
            case Platform.WINDOWS:
                return "windows-amd64"
            case _:
                return None


@lru_cache(maxsize=1)
def detect_platform() -> Platform:
    """Detect the current operating system."""
    if _sys.platform.startswith("linux"):
        return Platform.LINUX
    if _sys.platform == "darwin":
        return Platform.MACOS
    if _sys.platform in ("win32", "cygwin") or _platform.system() == "Windows":
        return Platform.WINDOWS
    return Platform.UNKNOWN
