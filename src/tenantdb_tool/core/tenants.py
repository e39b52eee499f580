"""Tenant credential resolution.

Maps a server-trusted project id to the connection parameters of the one
database provisioned for it. The tenant registry is the ``[tenants.<id>]``
section of the config file, maintained by the provisioning system. Every
operation gets its connection through here; nothing accepts caller-supplied
host, database or credentials.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from tenantdb_tool.core.client import PgClient
from tenantdb_tool.core.exceptions import (
    InvalidArgumentError,
    NotFoundError,
    NotProvisionedError,
)
from tenantdb_tool.core.models import TenantDatabase

if TYPE_CHECKING:
    from tenantdb_tool.core.config import AppConfig, Settings


def resolve_tenant(config: AppConfig, project_id: str) -> TenantDatabase:
    """Return the database credentials of ``project_id``.

    Raises NotFoundError for unknown projects and NotProvisionedError when
    the project's database has not been created yet.
    """
    project_id = str(project_id).strip()
    if not project_id:
        raise InvalidArgumentError("Project id is required")

    profile = config.tenants.get(project_id)
    if profile is None:
        raise NotFoundError(f"Project not found: '{project_id}'")
    if not profile.provisioned or not profile.database:
        raise NotProvisionedError(
            f"Database for project '{project_id}' is not provisioned yet"
        )

    server = config.server
    tenant = TenantDatabase(
        project_id=project_id,
        host=profile.host or server.host,
        port=profile.port or server.port,
        database_name=profile.database,
        # Provisioning names the tenant role after its database.
        username=profile.user or profile.database,
        password=profile.password,
        sslmode=profile.sslmode or server.sslmode,
    )
    structlog.get_logger().debug(
        "tenant resolved",
        project_id=project_id,
        host=tenant.host,
        database=tenant.database_name,
    )
    return tenant


def credentials(config: AppConfig, project_id: str) -> dict[str, object]:
    """Connection parameters as shown to the project owner."""
    tenant = resolve_tenant(config, project_id)
    return {
        "host": tenant.host,
        "port": tenant.port,
        "database": tenant.database_name,
        "username": tenant.username,
        "password": tenant.password,
    }


def open_client(config: AppConfig, settings: Settings, project_id: str) -> PgClient:
    """Acquire a per-call client for the project's database."""
    return PgClient(resolve_tenant(config, project_id), settings)
