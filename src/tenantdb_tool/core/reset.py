"""Destructive reset: drop every table in the tenant's schema."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from psycopg import sql

from tenantdb_tool.core.catalog import list_table_names, qualified
from tenantdb_tool.core.exceptions import DeadlineExceededError, ExecutionError
from tenantdb_tool.core.models import ResetOutcome, TableError

if TYPE_CHECKING:
    from tenantdb_tool.core.client import PgClient


def reset_database(client: PgClient, schema: str = "public") -> ResetOutcome:
    """Drop all tables of ``schema``, continuing past individual failures.

    CASCADE takes foreign keys and dependent views along with each table,
    so drop order does not matter. A table already gone by the time its
    turn comes (a partition dropped with its parent) counts as dropped.
    """
    log = structlog.get_logger()
    tables = list_table_names(client, schema)
    log.info("reset started", tables=len(tables))

    dropped = 0
    errors: list[TableError] = []
    for table in tables:
        query = sql.SQL("DROP TABLE IF EXISTS {} CASCADE").format(
            qualified(schema, table)
        )
        try:
            client.execute_query(query)
        except (ExecutionError, DeadlineExceededError) as e:
            errors.append(TableError(table=table, message=e.message))
            log.warning("drop failed", table=table, error=e.message)
            continue
        dropped += 1

    log.info("reset finished", dropped=dropped, failed=len(errors))
    return ResetOutcome(dropped_table_count=dropped, errors=errors)
