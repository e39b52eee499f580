"""Configuration inspection commands."""

from __future__ import annotations

import typer

from tenantdb_tool.cli.commands._shared import get_config, get_settings
from tenantdb_tool.cli.helpers import mask_secret
from tenantdb_tool.core.config import config_path_from_env

config_app = typer.Typer(help="Configuration inspection commands")

_SETTING_FIELDS = [
    ("statement_timeout", "s"),
    ("import_statement_timeout", "s"),
    ("export_timeout", "s"),
    ("max_result_rows", ""),
    ("max_page_size", ""),
    ("default_page_size", ""),
    ("max_cell_bytes", ""),
    ("export_batch_size", ""),
    ("exact_count_threshold", ""),
    ("schema_name", ""),
    ("default_format", ""),
]


@config_app.callback(invoke_without_command=True)
def config_callback(ctx: typer.Context) -> None:
    if not ctx.invoked_subcommand:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Display resolved settings with source attribution."""
    app_config = get_config(ctx)
    settings = get_settings(ctx)

    typer.echo("Settings (resolved):")
    for field_name, unit in _SETTING_FIELDS:
        value = getattr(settings, field_name)
        source = settings.sources.get(field_name, "default")
        typer.echo(f"  {field_name}: {value}{unit} ({source})")

    server = app_config.server
    typer.echo("")
    typer.echo("Server defaults:")
    typer.echo(f"  host: {server.host}")
    typer.echo(f"  port: {server.port}")
    typer.echo(f"  sslmode: {server.sslmode}")
    typer.echo(f"  connect_timeout: {server.connect_timeout}s")

    typer.echo("")
    typer.echo(f"Tenants: {len(app_config.tenants)}")
    typer.echo(f"Config File: {config_path_from_env(ctx.obj.get('config_file'))}")


@config_app.command("tenants")
def config_tenants(ctx: typer.Context) -> None:
    """List configured projects and their databases. Passwords are masked."""
    app_config = get_config(ctx)
    active = ctx.obj.get("project")

    if not app_config.tenants:
        typer.echo("No tenants configured.")
        typer.echo(f"Add tenants to: {config_path_from_env(ctx.obj.get('config_file'))}")
        return

    typer.echo("Tenants:")
    typer.echo("")
    for project_id, profile in sorted(app_config.tenants.items()):
        marker = "* " if project_id == active else "  "
        status = "" if profile.provisioned and profile.database else " (not provisioned)"
        typer.echo(f"{marker}{project_id}{status}")

        display_fields = [
            ("database", profile.database or "-"),
            ("user", profile.user or profile.database or "-"),
            ("password", mask_secret(profile.password)),
        ]
        if profile.host:
            display_fields.append(("host", profile.host))
        if profile.port:
            display_fields.append(("port", str(profile.port)))
        if profile.sslmode:
            display_fields.append(("sslmode", profile.sslmode))

        for field_name, value in display_fields:
            typer.echo(f"      {field_name}: {value}")
        typer.echo("")
