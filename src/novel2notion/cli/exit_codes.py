"""
Exit Codes - Process exit status of the command line interface.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes returned by ``novel2notion``."""

    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 2
    CONNECTION_ERROR = 3
    PARTIAL_SUCCESS = 4
    CANCELLED = 130

    @property
    def description(self) -> str:
        return {
            ExitCode.SUCCESS: "Completed successfully",
            ExitCode.ERROR: "Failed",
            ExitCode.CONFIG_ERROR: "Configuration is missing or invalid",
            ExitCode.CONNECTION_ERROR: "Could not connect to the workspace",
            ExitCode.PARTIAL_SUCCESS: "Completed with failures",
            ExitCode.CANCELLED: "Cancelled",
        }[self]
