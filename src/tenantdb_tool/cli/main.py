"""tenantdb-tool main entry point and command registration."""

from __future__ import annotations

import atexit
from pathlib import Path  # noqa: TC003
from typing import Annotated

import sentry_sdk
import structlog
import typer

from tenantdb_tool.__about__ import __version__
from tenantdb_tool.cli.commands._shared import (
    CompactOption,
    FormatOption,
    NoHeaderOption,
    TableOption,
    WidthOption,
    apply_local_format_options,
    get_client,
    get_config,
    get_project,
    get_settings,
    is_table_format,
    output_result,
    size_formatter,
)
from tenantdb_tool.cli.commands.config import config_app
from tenantdb_tool.cli.commands.query import query_command
from tenantdb_tool.cli.commands.transfer import export_command, import_command
from tenantdb_tool.cli.output import OutputFormat  # noqa: TC001
from tenantdb_tool.core.catalog import describe_table, list_tables, read_rows
from tenantdb_tool.core.exceptions import TenantDbError
from tenantdb_tool.core.exit_codes import ExitCode
from tenantdb_tool.core.logging import setup_logging
from tenantdb_tool.core.models import Grid
from tenantdb_tool.core.monitoring import setup_sentry
from tenantdb_tool.core.reset import reset_database
from tenantdb_tool.core.tenants import credentials

app = typer.Typer(
    help="tenantdb-tool - manage the database provisioned for a project",
    no_args_is_help=True,
)

app.add_typer(config_app, name="config")
app.command("query")(query_command)
app.command("export")(export_command)
app.command("import")(import_command)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"tenantdb-tool {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable verbose logging"),
    ] = False,
    log_json: Annotated[
        bool,
        typer.Option("--log-json", help="Emit logs as JSON lines on stderr"),
    ] = False,
    project: Annotated[
        str | None,
        typer.Option(
            "--project",
            "-P",
            help="Project id (default: $TENANTDB_PROJECT)",
        ),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config file"),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Statement timeout in seconds"),
    ] = None,
    schema: Annotated[
        str | None,
        typer.Option("--schema", "-s", help="Schema holding the tenant's tables"),
    ] = None,
    format: Annotated[
        OutputFormat | None,
        typer.Option("--format", "-f", help="Output format: table|json|csv"),
    ] = None,
    table: Annotated[
        bool,
        typer.Option("--table", help="Shorthand for --format table"),
    ] = False,
    compact: Annotated[
        bool,
        typer.Option("--compact", help="Compact JSON output (no indentation)"),
    ] = False,
    width: Annotated[
        int,
        typer.Option("--width", help="Column width for table format"),
    ] = 40,
    no_header: Annotated[
        bool,
        typer.Option("--no-header", help="Suppress header row in CSV output"),
    ] = False,
) -> None:
    """tenantdb-tool - manage the database provisioned for a project."""
    setup_logging(verbose, json_logs=log_json)
    setup_sentry()

    transaction = sentry_sdk.start_transaction(
        op="cli", name=ctx.invoked_subcommand or "tenantdb-tool"
    )
    transaction.__enter__()

    def cleanup() -> None:
        transaction.__exit__(None, None, None)
        sentry_sdk.flush(timeout=2)

    atexit.register(cleanup)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["project"] = project
    ctx.obj["config_file"] = config_file
    ctx.obj["timeout"] = timeout
    ctx.obj["schema"] = schema

    fmt = "table" if table else (format.value if format else None)
    ctx.obj["format"] = fmt
    ctx.obj["compact"] = compact
    ctx.obj["width"] = width
    ctx.obj["no_header"] = no_header


def run() -> None:
    """Entry point with global error handling."""
    try:
        app()
    except TenantDbError as e:
        sentry_sdk.capture_exception(e)
        typer.echo(f"Error: {e.message}", err=True)
        raise SystemExit(e.exit_code) from None
    except SystemExit:
        raise
    except KeyboardInterrupt:
        raise SystemExit(130) from None
    except Exception as e:
        sentry_sdk.capture_exception(e)
        typer.echo(f"Error: {e}", err=True)
        raise SystemExit(ExitCode.GENERAL_ERROR) from None
    finally:
        structlog.contextvars.clear_contextvars()


# ---------------------------------------------------------------------------
# Commands: credentials, tables, structure, data, reset
# ---------------------------------------------------------------------------


@app.command("credentials")
def credentials_command(
    ctx: typer.Context,
    format: FormatOption = None,
    table: TableOption = False,
    compact: CompactOption = False,
    width: WidthOption = None,
    no_header: NoHeaderOption = False,
) -> None:
    """Show connection parameters of the project's database."""
    apply_local_format_options(
        ctx,
        format=format,
        table=table,
        compact=compact,
        width=width,
        no_header=no_header,
    )
    creds = credentials(get_config(ctx), get_project(ctx))
    output_result(
        ctx,
        Grid(
            columns=["field", "value"],
            rows=[{"field": k, "value": v} for k, v in creds.items()],
        ),
    )


@app.command("tables")
def tables_command(
    ctx: typer.Context,
    format: FormatOption = None,
    table: TableOption = False,
    compact: CompactOption = False,
    width: WidthOption = None,
    no_header: NoHeaderOption = False,
) -> None:
    """
    List tables with row counts and size on disk.

    Row counts are planner estimates for large tables and exact counts
    for small or never-analyzed ones.
    """
    apply_local_format_options(
        ctx,
        format=format,
        table=table,
        compact=compact,
        width=width,
        no_header=no_header,
    )
    settings = get_settings(ctx)
    with get_client(ctx, settings) as client:
        tables = list_tables(
            client,
            settings.schema_name,
            exact_count_threshold=settings.exact_count_threshold,
        )

    fmt = size_formatter(ctx)
    output_result(
        ctx,
        Grid(
            columns=["name", "rows", "size"],
            rows=[
                {
                    "name": t.name,
                    "rows": t.estimated_row_count,
                    "size": fmt(t.size_on_disk),
                }
                for t in tables
            ],
        ),
    )


@app.command("structure")
def structure_command(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
    format: FormatOption = None,
    table: TableOption = False,
    compact: CompactOption = False,
    width: WidthOption = None,
    no_header: NoHeaderOption = False,
) -> None:
    """Show column definitions of a table in physical order."""
    apply_local_format_options(
        ctx,
        format=format,
        table=table,
        compact=compact,
        width=width,
        no_header=no_header,
    )
    settings = get_settings(ctx)
    with get_client(ctx, settings) as client:
        columns = describe_table(client, settings.schema_name, table_name)

    output_result(
        ctx,
        Grid(
            columns=["name", "type", "nullable", "key", "default", "extra"],
            rows=[
                {
                    "name": c.name,
                    "type": c.declared_type,
                    "nullable": "YES" if c.nullable else "NO",
                    "key": c.key_role.value,
                    "default": c.default,
                    "extra": c.extra,
                }
                for c in columns
            ],
        ),
    )


@app.command("data")
def data_command(
    ctx: typer.Context,
    table_name: Annotated[str, typer.Argument(help="Table name")],
    page: Annotated[
        int,
        typer.Option("--page", help="Page number, starting at 1"),
    ] = 1,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", help="Rows per page"),
    ] = None,
    format: FormatOption = None,
    table: TableOption = False,
    compact: CompactOption = False,
    width: WidthOption = None,
    no_header: NoHeaderOption = False,
) -> None:
    """Show one page of a table's rows, ordered by primary key."""
    apply_local_format_options(
        ctx,
        format=format,
        table=table,
        compact=compact,
        width=width,
        no_header=no_header,
    )
    settings = get_settings(ctx)
    with get_client(ctx, settings) as client:
        row_page = read_rows(
            client,
            settings.schema_name,
            table_name,
            page,
            settings.default_page_size if limit is None else limit,
            max_page_size=settings.max_page_size,
            max_cell_bytes=settings.max_cell_bytes,
        )

    output_result(ctx, row_page)
    if is_table_format(ctx):
        pages = max(-(-row_page.total_row_count // row_page.limit), 1)
        typer.echo(
            f"Page {row_page.page} of {pages} ({row_page.total_row_count} rows)",
            err=True,
        )


@app.command("reset")
def reset_command(
    ctx: typer.Context,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation"),
    ] = False,
) -> None:
    """
    Drop every table of the project's database.

    Foreign keys and dependent views go with their tables. There is no undo.
    """
    settings = get_settings(ctx)
    project = get_project(ctx)
    if not yes:
        typer.confirm(
            f"Drop ALL tables of project '{project}'? This cannot be undone",
            abort=True,
        )

    with get_client(ctx, settings) as client:
        outcome = reset_database(client, settings.schema_name)

    typer.echo(f"Dropped {outcome.dropped_table_count} tables")
    if outcome.errors:
        for error in outcome.errors:
            typer.echo(f"  {error.table}: {error.message}", err=True)
        raise typer.Exit(ExitCode.EXECUTION_ERROR)
