"""Shared test fixtures for tenantdb-tool."""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Any

import pytest
from psycopg import sql
from typer.testing import CliRunner

from tenantdb_tool.cli.main import app
from tenantdb_tool.core.config import Settings, parse_dsn
from tenantdb_tool.core.models import ColumnMeta, StatementResult, TenantDatabase

TEST_DSN_ENV = "TENANTDB_TEST_DSN"

FAKE_TENANT = TenantDatabase(
    project_id="42",
    host="db.internal",
    port=5432,
    database_name="project_42",
    username="project_42",
    password="secret",
)


def rows_result(columns: list[str], rows: list[tuple[Any, ...]]) -> StatementResult:
    return StatementResult(
        columns=[ColumnMeta(name=c) for c in columns],
        rows=rows,
        status_message=f"SELECT {len(rows)}",
    )


def write_result(status: str, affected: int = 0) -> StatementResult:
    return StatementResult(
        columns=[],
        rows=[],
        status_message=status,
        returns_rows=False,
        rows_affected=affected,
    )


Responder = Callable[[str, dict[str, Any] | None], StatementResult | Exception]


class FakeClient:
    """Stands in for PgClient; answers each statement through a responder.

    The responder gets the rendered SQL text and the params and returns a
    StatementResult, or an exception to raise.
    """

    def __init__(self, responder: Responder, tenant: TenantDatabase = FAKE_TENANT) -> None:
        self.responder = responder
        self.tenant = tenant
        self.executed: list[str] = []
        self.timeouts: list[float | None] = []
        self.closed = False
        self.open_transaction = False

    def __enter__(self) -> FakeClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def connect(self) -> None:
        return None

    def render(self, query: str | sql.Composable) -> str:
        if isinstance(query, str):
            return query
        return query.as_string(None)

    def execute_query(
        self,
        query: str | sql.Composable,
        params: dict[str, Any] | None = None,
        *,
        max_rows: int | None = None,
        timeout: float | None = None,
    ) -> StatementResult:
        text = self.render(query)
        self.executed.append(text)
        self.timeouts.append(timeout)
        outcome = self.responder(text, params)
        if isinstance(outcome, Exception):
            raise outcome
        if max_rows is not None and len(outcome.rows) > max_rows:
            outcome = outcome.model_copy(
                update={
                    "rows": outcome.rows[:max_rows],
                    "truncated": True,
                }
            )
        return outcome

    def stream_batches(
        self,
        query: str | sql.Composable,
        batch_size: int,
        *,
        timeout: float | None = None,
    ):
        result = self.execute_query(query, timeout=timeout)
        for i in range(0, len(result.rows), batch_size):
            yield result.rows[i : i + batch_size]

    def rollback_open_transaction(self) -> bool:
        was_open = self.open_transaction
        self.open_transaction = False
        return was_open

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_client() -> Callable[[Responder], FakeClient]:
    return FakeClient


@pytest.fixture
def runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def cli_runner(runner):
    """Invoke the CLI app with the given arguments."""

    def invoke(*args: str, **kwargs):
        return runner.invoke(app, list(args), **kwargs)

    return invoke


@pytest.fixture
def temp_dir():
    """Temporary directory for test files."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep the developer's config file and TENANTDB_* settings out of tests."""
    for name in list(os.environ):
        if name.startswith("TENANTDB_") and name != TEST_DSN_ENV:
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TENANTDB_CONFIG", str(tmp_path / "missing-config.toml"))


# ---------------------------------------------------------------------------
# Integration: a live database from TENANTDB_TEST_DSN
# ---------------------------------------------------------------------------


@pytest.fixture
def live_tenant() -> TenantDatabase:
    dsn = os.environ.get(TEST_DSN_ENV)
    if not dsn:
        pytest.skip(f"{TEST_DSN_ENV} not set")
    parts = parse_dsn(dsn)
    return TenantDatabase(
        project_id="integration",
        host=parts.get("host", "localhost"),
        port=parts.get("port", 5432),
        database_name=parts["database"],
        username=parts.get("user", parts["database"]),
        password=parts.get("password"),
        sslmode=parts.get("sslmode", "prefer"),
    )


@pytest.fixture
def live_schema(live_tenant):
    """A throwaway schema, first on the search path, dropped afterwards."""
    from tenantdb_tool.core.client import PgClient

    name = f"tdb_test_{uuid.uuid4().hex[:10]}"
    with PgClient(live_tenant, Settings()) as admin:
        admin.execute_query(sql.SQL("CREATE SCHEMA {}").format(sql.Identifier(name)))
    yield name
    with PgClient(live_tenant, Settings()) as admin:
        admin.execute_query(
            sql.SQL("DROP SCHEMA IF EXISTS {} CASCADE").format(sql.Identifier(name))
        )


@pytest.fixture
def live_client(live_tenant, live_schema):
    from tenantdb_tool.core.client import PgClient

    with PgClient(live_tenant, Settings(schema_name=live_schema)) as client:
        client.execute_query(
            sql.SQL("SET search_path TO {}").format(sql.Identifier(live_schema))
        )
        yield client
