"""Error payload for the release stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "config_missing",
    "invalid_lifecycle",
    "vcs_failed",
    "registry_failed",
    "registry_reply_invalid",
    "cli_missing",
    "download_failed",
    "checksum_mismatch",
    "install_failed",
    "state_failed",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical release error.

    ``hint`` carries diagnostics such as the registry's combined output.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
