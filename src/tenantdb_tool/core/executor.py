"""Ad-hoc SQL execution against a tenant database.

The result kind comes from the driver's response (result set or not), never
from inspecting the SQL text. There is no statement allow/deny list: the
tenant owns its database and isolation comes from which connection was
resolved. Statement timeout and the row cap bound runaway queries.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from tenantdb_tool.core.exceptions import InvalidArgumentError
from tenantdb_tool.core.models import QueryResult, ReadResult, WriteResult
from tenantdb_tool.core.values import dedupe_column_names, to_client_row

if TYPE_CHECKING:
    from tenantdb_tool.core.client import PgClient


def execute(
    client: PgClient,
    query: str,
    *,
    max_rows: int = 1000,
    max_cell_bytes: int = 4096,
    timeout: float | None = None,
) -> QueryResult:
    """Run one caller-supplied statement.

    SQL errors propagate as ExecutionError with the server's message;
    timeouts as DeadlineExceededError. More rows than max_rows is not an
    error: the ReadResult comes back truncated.
    """
    if not query or not query.strip():
        raise InvalidArgumentError("Query is required")

    log = structlog.get_logger()
    start = time.monotonic()
    result = client.execute_query(query.strip(), max_rows=max_rows, timeout=timeout)
    duration_ms = (time.monotonic() - start) * 1000

    if result.returns_rows:
        columns = dedupe_column_names([c.name for c in result.columns])
        read = ReadResult(
            columns=columns,
            rows=[to_client_row(columns, row, max_cell_bytes) for row in result.rows],
            truncated=result.truncated,
            duration_ms=duration_ms,
        )
        if read.truncated:
            log.info("result truncated", max_rows=max_rows)
        return read

    return WriteResult(
        rows_affected=result.rows_affected,
        status_message=result.status_message,
        duration_ms=duration_ms,
    )
