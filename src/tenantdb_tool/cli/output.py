"""Output format selection and TTY auto-detection."""

from __future__ import annotations

import sys
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tenantdb_tool.formatters.base import Formatter, Tabular


class OutputFormat(StrEnum):
    TABLE = "table"
    JSON = "json"
    CSV = "csv"


def detect_tty() -> bool:
    return sys.stdout.isatty()


def resolve_format(format_flag: str | None) -> str:
    """Explicit --format wins; otherwise table on a TTY and csv in a pipe."""
    if format_flag is not None:
        return format_flag
    return OutputFormat.TABLE if detect_tty() else OutputFormat.CSV


def get_formatter(
    format_flag: str | None = None,
    *,
    compact: bool = False,
    width: int = 40,
    no_header: bool = False,
) -> Formatter:
    """Build and return the formatter for the resolved format."""
    # Importing the package registers every formatter.
    import tenantdb_tool.formatters  # noqa: F401
    from tenantdb_tool.formatters.base import registry

    fmt_name = resolve_format(format_flag)

    kwargs: dict[str, object] = {}
    if fmt_name == OutputFormat.TABLE:
        kwargs["width"] = width
    elif fmt_name == OutputFormat.JSON:
        kwargs["compact"] = compact
    elif fmt_name == OutputFormat.CSV:
        kwargs["no_header"] = no_header

    return registry.get(str(fmt_name), **kwargs)


def write_output(formatter: Formatter, data: Tabular) -> None:
    """Write formatted output to stdout."""
    for line in formatter.format(data):
        sys.stdout.write(line + "\n")
