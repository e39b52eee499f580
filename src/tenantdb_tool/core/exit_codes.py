"""Standard exit codes for tenantdb-tool.

Exit codes follow Unix conventions; 8 and above are tool specific.
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Exit codes for tenantdb-tool commands."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    USAGE_ERROR = 2
    INPUT_ERROR = 3
    OUTPUT_ERROR = 4
    NETWORK_ERROR = 5
    TIMEOUT = 6
    CONFIG_ERROR = 7
    NOT_FOUND = 8
    EXECUTION_ERROR = 9
