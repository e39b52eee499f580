"""Shared CLI plumbing for command modules.

Settings resolution, client creation, format-option handling, and output
helpers. Distinct from cli.helpers which contains pure formatting functions.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Annotated, Any

import structlog
import typer

from tenantdb_tool.cli.helpers import fmt_size
from tenantdb_tool.cli.output import (
    OutputFormat,
    detect_tty,
    get_formatter,
    resolve_format,
    write_output,
)
from tenantdb_tool.core.config import load_config, resolve_settings
from tenantdb_tool.core.exceptions import InvalidArgumentError
from tenantdb_tool.core.tenants import open_client

if TYPE_CHECKING:
    from tenantdb_tool.core.client import PgClient
    from tenantdb_tool.core.config import AppConfig, Settings
    from tenantdb_tool.formatters.base import Tabular

PROJECT_ENV = "TENANTDB_PROJECT"


def get_config(ctx: typer.Context) -> AppConfig:
    obj = ctx.ensure_object(dict)
    if "app_config" not in obj:
        obj["app_config"] = load_config(obj.get("config_file"))
    return obj["app_config"]


def get_settings(ctx: typer.Context, **overrides: Any) -> Settings:
    obj = ctx.ensure_object(dict)
    cli_overrides: dict[str, Any] = {
        key: obj.get(key) for key in ("timeout", "schema") if obj.get(key) is not None
    }
    cli_overrides.update({k: v for k, v in overrides.items() if v is not None})
    return resolve_settings(get_config(ctx), **cli_overrides)


def get_project(ctx: typer.Context) -> str:
    obj = ctx.ensure_object(dict)
    project = obj.get("project") or os.environ.get(PROJECT_ENV)
    if not project:
        msg = f"No project given. Use --project/-P or set {PROJECT_ENV}."
        raise InvalidArgumentError(msg)
    structlog.contextvars.bind_contextvars(project=project)
    return project


def get_client(ctx: typer.Context, settings: Settings | None = None) -> PgClient:
    """Client for the current project's database, resolved from config only."""
    settings = settings or get_settings(ctx)
    return open_client(get_config(ctx), settings, get_project(ctx))


def _format_flag(ctx: typer.Context) -> str | None:
    """Explicit --format, else the configured default on a TTY, else None (csv)."""
    fmt = ctx.ensure_object(dict).get("format")
    if fmt is None and detect_tty():
        fmt = get_config(ctx).default_format
    return fmt


def format_options(ctx: typer.Context) -> dict[str, Any]:
    obj = ctx.ensure_object(dict)
    return {
        "format_flag": _format_flag(ctx),
        "compact": obj.get("compact", False),
        "width": obj.get("width", 40),
        "no_header": obj.get("no_header", False),
    }


def output_result(ctx: typer.Context, data: Tabular) -> None:
    formatter = get_formatter(**format_options(ctx))
    write_output(formatter, data)


def apply_local_format_options(
    ctx: typer.Context,
    *,
    format: OutputFormat | None = None,
    table: bool = False,
    compact: bool = False,
    width: int | None = None,
    no_header: bool = False,
) -> None:
    obj = ctx.ensure_object(dict)
    if format is not None:
        obj["format"] = format.value
    if table:
        obj["format"] = "table"
    if compact:
        obj["compact"] = compact
    if width is not None:
        obj["width"] = width
    if no_header:
        obj["no_header"] = no_header


def is_table_format(ctx: typer.Context) -> bool:
    return resolve_format(_format_flag(ctx)) == "table"


def size_formatter(ctx: typer.Context) -> Any:
    """Human sizes for table output, raw byte counts for machine formats."""
    if is_table_format(ctx):
        return fmt_size
    return lambda b: b or 0


FormatOption = Annotated[
    OutputFormat | None,
    typer.Option("--format", "-f", help="Output format: table|json|csv"),
]
TableOption = Annotated[
    bool,
    typer.Option("--table", help="Shorthand for --format table"),
]
CompactOption = Annotated[
    bool,
    typer.Option("--compact", help="Compact JSON output (no indentation)"),
]
WidthOption = Annotated[
    int | None,
    typer.Option("--width", help="Column width for table format"),
]
NoHeaderOption = Annotated[
    bool,
    typer.Option("--no-header", help="Suppress header row in CSV output"),
]
