"""Exception hierarchy for tenantdb-tool.

All exceptions carry an exit_code for CLI return value mapping.
Per-statement failures inside import and reset are not exceptions; they are
reported in ImportOutcome.errors and ResetOutcome.errors.
"""

from tenantdb_tool.core.exit_codes import ExitCode


class TenantDbError(Exception):
    """Base exception for all tenantdb-tool errors."""

    exit_code: int = ExitCode.GENERAL_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(TenantDbError):
    """Unknown project or table."""

    exit_code: int = ExitCode.NOT_FOUND


class NotProvisionedError(NotFoundError):
    """Project exists but its database has not been created yet."""


class InvalidArgumentError(TenantDbError):
    """Bad pagination bounds, empty script, missing input."""

    exit_code: int = ExitCode.INPUT_ERROR


class ExecutionError(TenantDbError):
    """SQL failure reported by the server. The message is the server's text."""

    exit_code: int = ExitCode.EXECUTION_ERROR

    def __init__(self, message: str, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


class NetworkError(TenantDbError):
    """Connection failures, unreachable host, connection lost mid-call."""

    exit_code: int = ExitCode.NETWORK_ERROR


class DeadlineExceededError(NetworkError):
    """Statement or connection timeout."""

    exit_code: int = ExitCode.TIMEOUT


class ConfigError(TenantDbError):
    """Malformed config, invalid tenant entry."""

    exit_code: int = ExitCode.CONFIG_ERROR
