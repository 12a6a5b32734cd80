"""Error codes for CLI exit status.

Stable process exit codes used at the CLI boundary. Library code returns
Result values and never exits the process itself.
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands.

    - 0: Success
    - 1: User error (invalid package, invariant violated)
    - 2: Environment error (bad config)
    - 3: Build error (spec missing, manifest malformed)
    - 5: I/O error (extraction or packing failed)
    """

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
