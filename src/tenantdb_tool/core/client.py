"""PostgreSQL client for tenantdb-tool.

Wraps a psycopg v3 synchronous connection to one tenant database with query
execution, statement timeout, row cap, streaming reads, and exception mapping
to the TenantDbError hierarchy.

A client is acquired per call and closed before the call returns; nothing is
shared between calls.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import psycopg
import psycopg.errors
import sentry_sdk
import structlog
from psycopg import sql
from psycopg.pq import TransactionStatus

from tenantdb_tool.core.exceptions import (
    DeadlineExceededError,
    ExecutionError,
    NetworkError,
)
from tenantdb_tool.core.models import ColumnMeta, StatementResult

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tenantdb_tool.core.config import Settings
    from tenantdb_tool.core.models import TenantDatabase

Query = str | sql.Composable

# Errors raised when a statement cannot be opened as a cursor (anything but
# a plain query). Such statements run on a regular cursor instead.
_NOT_A_CURSOR_QUERY = (
    psycopg.errors.SyntaxError,
    psycopg.errors.FeatureNotSupported,
    psycopg.errors.InvalidCursorDefinition,
)

_CAPPED_CURSOR = "tenantdb_capped"


class PgClient:
    """Synchronous client bound to one tenant database."""

    def __init__(self, tenant: TenantDatabase, settings: Settings) -> None:
        self.tenant = tenant
        self.settings = settings
        self._connection: psycopg.Connection[Any] | None = None
        self._timeout_ms: int | None = None

    def __enter__(self) -> PgClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _connect(self) -> psycopg.Connection[Any]:
        if self._connection is not None and not self._connection.closed:
            return self._connection

        self._timeout_ms = None
        try:
            self._connection = psycopg.connect(
                host=self.tenant.host,
                port=self.tenant.port,
                dbname=self.tenant.database_name,
                user=self.tenant.username,
                password=self.tenant.password,
                sslmode=self.tenant.sslmode,
                connect_timeout=self.settings.connect_timeout,
                application_name=self.settings.application_name,
                autocommit=True,
            )
        except psycopg.OperationalError as e:
            msg = (
                f"Connection failed to {self.tenant.host}:{self.tenant.port} "
                f"database '{self.tenant.database_name}': {e}"
            )
            raise NetworkError(msg) from e

        return self._connection

    def connect(self) -> psycopg.Connection[Any]:
        """Open the connection now instead of on first query."""
        return self._connect()

    def render(self, query: Query) -> str:
        """Return SQL text for a composed query, quoted for this connection."""
        if isinstance(query, str):
            return query
        return query.as_string(self._connect())

    def _set_timeout(
        self, conn: psycopg.Connection[Any], cur: psycopg.Cursor[Any], timeout: float
    ) -> None:
        # The session timeout only changes between transaction blocks: a
        # failed block refuses every command but ROLLBACK/COMMIT, and an open
        # one would undo the SET on rollback.
        if conn.info.transaction_status != TransactionStatus.IDLE:
            return
        timeout_ms = max(int(timeout * 1000), 1)
        if timeout_ms == self._timeout_ms:
            return
        cur.execute(f"SET statement_timeout = {timeout_ms}")
        self._timeout_ms = timeout_ms

    def _map_error(
        self, e: psycopg.Error, sql_text: str, timeout: float, span: Any
    ) -> Exception:
        log = structlog.get_logger()
        if isinstance(e, psycopg.errors.QueryCanceled):
            span.set_status("deadline_exceeded")
            log.error("query timeout", sql=sql_text, timeout=timeout)
            return DeadlineExceededError(f"Query timed out after {timeout}s: {e}")
        conn = self._connection
        if conn is None or conn.broken or conn.closed:
            span.set_status("unavailable")
            log.error("connection lost", sql=sql_text, error=str(e))
            return NetworkError(f"Database connection lost: {e}")
        span.set_status("internal_error")
        log.debug("statement failed", sql=sql_text, error=str(e), sqlstate=e.sqlstate)
        return ExecutionError(str(e), sqlstate=e.sqlstate)

    def _fetch_capped(
        self,
        conn: psycopg.Connection[Any],
        query: Query,
        params: dict[str, Any] | None,
        max_rows: int,
    ) -> StatementResult | None:
        """Read at most max_rows + 1 rows through a server-side cursor.

        The server keeps the rest of the result, so a runaway query costs no
        client memory. Returns None when the statement is not a plain query.
        """
        try:
            with conn.transaction(), conn.cursor(name=_CAPPED_CURSOR) as cur:
                cur.execute(query, params)
                rows = cur.fetchmany(max_rows + 1)
                columns = [ColumnMeta(name=d.name) for d in cur.description or ()]
        except _NOT_A_CURSOR_QUERY:
            return None

        truncated = len(rows) > max_rows
        rows = rows[:max_rows]
        return StatementResult(
            columns=columns,
            rows=rows,
            status_message=f"SELECT {len(rows)}",
            truncated=truncated,
        )

    def execute_query(
        self,
        query: Query,
        params: dict[str, Any] | None = None,
        *,
        max_rows: int | None = None,
        timeout: float | None = None,
    ) -> StatementResult:
        """Execute one statement and return a StatementResult.

        With max_rows set, a plain query is read through a server-side cursor
        and at most that many rows reach the client; the result is flagged
        truncated when the server had more. Other statements run as usual.
        """
        log = structlog.get_logger()
        conn = self._connect()
        effective_timeout = timeout or self.settings.statement_timeout

        sql_text = " ".join(self.render(query).split())
        log.debug("executing query", sql=sql_text)
        with sentry_sdk.start_span(op="db.query", name=sql_text[:100]) as span:
            start_time = time.monotonic()
            try:
                with conn.cursor() as cur:
                    self._set_timeout(conn, cur, effective_timeout)

                    result = None
                    if (
                        max_rows is not None
                        and conn.info.transaction_status != TransactionStatus.INERROR
                    ):
                        result = self._fetch_capped(conn, query, params, max_rows)
                    if result is None:
                        cur.execute(query, params)
                        returns_rows = cur.description is not None
                        result = StatementResult(
                            columns=[
                                ColumnMeta(name=d.name) for d in cur.description or ()
                            ],
                            rows=cur.fetchall() if returns_rows else [],
                            status_message=cur.statusmessage or "",
                            returns_rows=returns_rows,
                            rows_affected=0 if returns_rows else max(cur.rowcount, 0),
                        )

                    duration_ms = (time.monotonic() - start_time) * 1000
                    span.set_data("row_count", len(result.rows))
                    span.set_data("duration_ms", duration_ms)
                    log.debug(
                        "query complete",
                        duration_ms=f"{duration_ms:.1f}",
                        row_count=len(result.rows),
                        truncated=result.truncated,
                    )
                    return result

            except psycopg.Error as e:
                span.set_data("duration_ms", (time.monotonic() - start_time) * 1000)
                raise self._map_error(e, sql_text, effective_timeout, span) from e

    def stream_batches(
        self,
        query: Query,
        batch_size: int,
        *,
        timeout: float | None = None,
    ) -> Iterator[list[tuple[Any, ...]]]:
        """Yield rows of a query in lists of at most batch_size.

        Rows are streamed from the server rather than buffered whole.
        """
        conn = self._connect()
        effective_timeout = timeout or self.settings.statement_timeout
        sql_text = " ".join(self.render(query).split())
        structlog.get_logger().debug("streaming query", sql=sql_text)

        with sentry_sdk.start_span(op="db.stream", name=sql_text[:100]) as span:
            try:
                with conn.cursor() as cur:
                    self._set_timeout(conn, cur, effective_timeout)
                    batch: list[tuple[Any, ...]] = []
                    for row in cur.stream(query):
                        batch.append(row)
                        if len(batch) >= batch_size:
                            yield batch
                            batch = []
                    if batch:
                        yield batch
            except psycopg.Error as e:
                raise self._map_error(e, sql_text, effective_timeout, span) from e

    def rollback_open_transaction(self) -> bool:
        """Roll back a transaction block left open by executed statements.

        Returns True when there was one.
        """
        conn = self._connection
        if conn is None or conn.closed:
            return False
        if conn.info.transaction_status == TransactionStatus.IDLE:
            return False
        try:
            conn.execute("ROLLBACK")
        except psycopg.Error as e:
            raise NetworkError(f"Database connection lost: {e}") from e
        structlog.get_logger().warning("open transaction rolled back")
        return True

    def close(self) -> None:
        """Close the database connection."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        self._timeout_ms = None
