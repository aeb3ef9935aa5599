"""Error codes for CLI exit status.

The pipeline host only distinguishes success from failure, but local runs
and wrapper scripts benefit from knowing which boundary failed.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    These values are used as process exit codes and should remain stable:
    - 0: Success
    - 1: Configuration error (missing input or context variable)
    - 2: VCS error (git query failed with no fallback)
    - 3: Registry error (rearm CLI failed or replied with garbage)
    - 4: Network error (download failed)
    - 5: I/O error (archive, state file, permissions)
    """

    OK = 0
    USER_ERROR = 1
    VCS_ERROR = 2
    REGISTRY_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
