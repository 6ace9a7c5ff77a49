"""Exit codes for eco commands.

The numeric values are part of the CLI contract and must remain stable:
- 0: Success
- 1: User error (bad input, unknown repo, invalid plan)
- 2: Environment error (not inside an ecosystem, gh/git missing)
- 3: Build error (a build/verify job failed)
- 4: Network error (push failed, CI workflow failed or never appeared)
- 5: I/O error (manifest or plan file unreadable/unwritable)
- 6: Dependency cycle between workspaces
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    CYCLE_ERROR = 6
