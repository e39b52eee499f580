"""The query command: one ad-hoc statement against the project database."""

from __future__ import annotations

import sys
from typing import Annotated

import typer

from tenantdb_tool.cli.commands._shared import (
    CompactOption,
    FormatOption,
    NoHeaderOption,
    TableOption,
    WidthOption,
    apply_local_format_options,
    get_client,
    get_settings,
    output_result,
)
from tenantdb_tool.cli.helpers import fmt_duration_ms
from tenantdb_tool.core.executor import execute
from tenantdb_tool.core.models import ReadResult
from tenantdb_tool.core.script_source import resolve_sql_source


def query_command(
    ctx: typer.Context,
    file: Annotated[
        str | None,
        typer.Argument(help="SQL file to execute"),
    ] = None,
    execute_sql: Annotated[
        str | None,
        typer.Option("--execute", "-e", help="Execute inline SQL"),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", "-t", help="Statement timeout in seconds"),
    ] = None,
    max_rows: Annotated[
        int | None,
        typer.Option("--max-rows", help="Maximum rows to return", min=1),
    ] = None,
    format: FormatOption = None,
    table: TableOption = False,
    compact: CompactOption = False,
    width: WidthOption = None,
    no_header: NoHeaderOption = False,
) -> None:
    """Execute one SQL statement from file, inline (-e), or stdin.

    Statements returning rows print them; other statements print the
    server's status line (for example ``UPDATE 3``).
    """
    try:
        is_tty = sys.stdin.isatty()
    except (ValueError, AttributeError):
        is_tty = False
    if execute_sql is None and file is None and is_tty:
        typer.echo(ctx.get_help())
        raise typer.Exit()

    apply_local_format_options(
        ctx,
        format=format,
        table=table,
        compact=compact,
        width=width,
        no_header=no_header,
    )
    text = resolve_sql_source(inline=execute_sql, file_path=file)
    settings = get_settings(ctx, timeout=timeout, max_rows=max_rows)

    with get_client(ctx, settings) as client:
        result = execute(
            client,
            text,
            max_rows=settings.max_result_rows,
            max_cell_bytes=settings.max_cell_bytes,
        )

    if isinstance(result, ReadResult):
        output_result(ctx, result)
        summary = f"({len(result.rows)} rows, {fmt_duration_ms(result.duration_ms)})"
        if result.truncated:
            summary += f" truncated to {settings.max_result_rows} rows"
        typer.echo(summary, err=True)
        return

    typer.echo(result.status_message or "OK")
    typer.echo(
        f"({result.rows_affected} rows affected, {fmt_duration_ms(result.duration_ms)})",
        err=True,
    )
