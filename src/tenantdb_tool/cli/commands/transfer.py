"""Dump export and SQL script import commands."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import structlog
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
from tenantdb_tool.core.dump import dump_filename, export_database
from tenantdb_tool.core.exit_codes import ExitCode
from tenantdb_tool.core.importer import import_script
from tenantdb_tool.core.models import Grid
from tenantdb_tool.core.script_source import resolve_sql_source


def export_command(
    ctx: typer.Context,
    output: Annotated[
        str | None,
        typer.Option(
            "--output",
            "-o",
            help="Output file, '-' for stdout. Default: <database>_<timestamp>.sql",
        ),
    ] = None,
    batch_size: Annotated[
        int | None,
        typer.Option("--batch-size", help="Rows per INSERT statement", min=1),
    ] = None,
) -> None:
    """Export the project database as a SQL script."""
    settings = get_settings(ctx)
    batch = batch_size or settings.export_batch_size

    with get_client(ctx, settings) as client:
        chunks = export_database(
            client,
            settings.schema_name,
            database_name=client.tenant.database_name,
            batch_size=batch,
            timeout=settings.export_timeout,
        )
        if output == "-":
            for chunk in chunks:
                sys.stdout.write(chunk)
            return

        path = Path(output or dump_filename(client.tenant.database_name))
        written = 0
        try:
            with path.open("w", encoding="utf-8") as f:
                for chunk in chunks:
                    f.write(chunk)
                    written += len(chunk.encode("utf-8"))
        except BaseException:
            path.unlink(missing_ok=True)
            raise

    structlog.get_logger().info("export written", path=str(path), bytes=written)
    typer.echo(f"Exported {written} bytes to {path}", err=True)


def import_command(
    ctx: typer.Context,
    file: Annotated[
        str | None,
        typer.Argument(help="SQL script to import"),
    ] = None,
    execute_sql: Annotated[
        str | None,
        typer.Option("--execute", "-e", help="Inline SQL script"),
    ] = None,
    statement_timeout: Annotated[
        float | None,
        typer.Option(
            "--statement-timeout", help="Per-statement timeout in seconds"
        ),
    ] = None,
    format: FormatOption = None,
    table: TableOption = False,
    compact: CompactOption = False,
    width: WidthOption = None,
    no_header: NoHeaderOption = False,
) -> None:
    """Run a multi-statement SQL script, continuing past failing statements.

    Each statement commits on its own. Failed statements are listed with
    their 1-based position; the exit code is non-zero when any failed.
    """
    apply_local_format_options(
        ctx,
        format=format,
        table=table,
        compact=compact,
        width=width,
        no_header=no_header,
    )
    script = resolve_sql_source(inline=execute_sql, file_path=file)
    settings = get_settings(ctx, import_timeout=statement_timeout)

    with get_client(ctx, settings) as client:
        outcome = import_script(
            client, script, statement_timeout=settings.import_statement_timeout
        )

    typer.echo(
        f"Executed {outcome.statements_succeeded}/{outcome.statements_total} statements"
        + (", aborted: connection lost" if outcome.aborted else ""),
        err=True,
    )
    if outcome.errors:
        output_result(
            ctx,
            Grid.from_models(outcome.errors, ["statement_index", "message"]),
        )
    if outcome.aborted:
        raise typer.Exit(ExitCode.NETWORK_ERROR)
    if not outcome.success:
        raise typer.Exit(ExitCode.EXECUTION_ERROR)
