"""Exit codes for the pipeline CLI.

The numeric values are reported to the triggering CI system and should
remain stable:
- 0: Pipeline succeeded
- 1: User error (bad arguments, trigger mismatch)
- 2: Environment error (missing tool, wrong runtime, missing token)
- 3: Pipeline error (a step failed)
- 5: I/O error (unreadable or invalid config file)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    PIPELINE_ERROR = 3
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")
