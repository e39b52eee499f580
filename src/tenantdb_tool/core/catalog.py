"""Schema catalog and paginated row reads for a tenant database.

Table names coming from callers are checked against the live catalog before
they reach any SQL text, and are then embedded only as psycopg
``sql.Identifier`` values. Parameter binding cannot cover identifiers, so this
membership check is what keeps caller strings out of the statement.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from psycopg import sql

from tenantdb_tool.core.exceptions import InvalidArgumentError, NotFoundError
from tenantdb_tool.core.models import (
    ColumnDescriptor,
    KeyRole,
    RowPage,
    TableDescriptor,
)
from tenantdb_tool.core.values import to_client_row

if TYPE_CHECKING:
    from tenantdb_tool.core.client import PgClient

_TABLES_SQL = """
SELECT
    c.relname AS name,
    c.reltuples::bigint AS estimated_rows,
    pg_catalog.pg_total_relation_size(c.oid) AS total_bytes,
    c.relkind = 'p' AS partitioned
FROM pg_catalog.pg_class c
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = %(schema)s
  AND c.relkind IN ('r', 'p')
ORDER BY c.relname
"""

_TABLE_NAMES_SQL = """
SELECT c.relname, c.relkind = 'p' AS partitioned
FROM pg_catalog.pg_class c
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = %(schema)s
  AND c.relkind IN ('r', 'p')
ORDER BY c.relname
"""

_COLUMNS_SQL = """
SELECT
    a.attname AS name,
    pg_catalog.format_type(a.atttypid, a.atttypmod) AS declared_type,
    NOT a.attnotnull AS nullable,
    pg_catalog.pg_get_expr(d.adbin, d.adrelid) AS default_expr,
    a.attidentity AS identity,
    a.attgenerated AS generated,
    EXISTS (
        SELECT 1 FROM pg_catalog.pg_index i
        WHERE i.indrelid = c.oid AND i.indisprimary AND a.attnum = ANY(i.indkey)
    ) AS is_primary,
    EXISTS (
        SELECT 1 FROM pg_catalog.pg_index i
        WHERE i.indrelid = c.oid AND i.indisunique AND NOT i.indisprimary
          AND a.attnum = ANY(i.indkey)
    ) AS is_unique,
    EXISTS (
        SELECT 1 FROM pg_catalog.pg_index i
        WHERE i.indrelid = c.oid AND a.attnum = ANY(i.indkey)
    ) AS is_indexed
FROM pg_catalog.pg_attribute a
JOIN pg_catalog.pg_class c ON c.oid = a.attrelid
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
LEFT JOIN pg_catalog.pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
WHERE n.nspname = %(schema)s
  AND c.relname = %(table)s
  AND a.attnum > 0
  AND NOT a.attisdropped
ORDER BY a.attnum
"""

_IDENTITY_LABELS = {
    "a": "GENERATED ALWAYS AS IDENTITY",
    "d": "GENERATED BY DEFAULT AS IDENTITY",
}

_GENERATED_KINDS = {"s": "STORED", "v": "VIRTUAL"}


def qualified(schema: str, table: str) -> sql.Composable:
    return sql.Identifier(schema, table)


def scan_source(schema: str, table: str, partitioned: bool = False) -> sql.Composable:
    """FROM target holding exactly the rows that belong to ``table``.

    Rows of an inheritance child are not rows of its parent, so plain tables
    are read with ONLY. A partitioned table stores nothing itself and is read
    through its partitions.
    """
    if partitioned:
        return qualified(schema, table)
    return sql.SQL("ONLY {}").format(qualified(schema, table))


def _table_kinds(client: PgClient, schema: str) -> dict[str, bool]:
    result = client.execute_query(_TABLE_NAMES_SQL, {"schema": schema})
    return {name: bool(partitioned) for name, partitioned in result.rows}


def list_table_names(client: PgClient, schema: str = "public") -> list[str]:
    return list(_table_kinds(client, schema))


def list_tables(
    client: PgClient,
    schema: str = "public",
    *,
    exact_count_threshold: int = 10_000,
) -> list[TableDescriptor]:
    """List tables sorted by name with row-count and size estimates.

    The planner estimate (reltuples) is replaced by an exact count(*) for
    tables never analyzed (estimate -1) and for tables whose estimate is
    below exact_count_threshold, where counting is cheap.
    """
    result = client.execute_query(_TABLES_SQL, {"schema": schema})

    tables: list[TableDescriptor] = []
    for name, estimated, total_bytes, partitioned in result.rows:
        rows = estimated if estimated is not None else -1
        if rows < exact_count_threshold:
            rows = count_rows(client, schema, name, partitioned=bool(partitioned))
        tables.append(
            TableDescriptor(
                name=name,
                estimated_row_count=max(rows, 0),
                size_on_disk=total_bytes or 0,
            )
        )
    return tables


def count_rows(
    client: PgClient, schema: str, table: str, *, partitioned: bool = False
) -> int:
    query = sql.SQL("SELECT count(*) FROM {}").format(
        scan_source(schema, table, partitioned)
    )
    result = client.execute_query(query)
    return int(result.rows[0][0]) if result.rows else 0


def _lookup(client: PgClient, schema: str, table: str) -> bool:
    """Whether catalog table ``table`` is partitioned; NotFoundError if absent."""
    kinds = _table_kinds(client, schema) if table else {}
    if table not in kinds:
        raise NotFoundError(f"Table not found: '{table}'")
    return kinds[table]


def require_table(client: PgClient, schema: str, table: str) -> str:
    """Return ``table`` if it is a member of the catalog, else NotFoundError."""
    _lookup(client, schema, table)
    return table


def _key_role(is_primary: bool, is_unique: bool, is_indexed: bool) -> KeyRole:
    if is_primary:
        return KeyRole.PRIMARY
    if is_unique:
        return KeyRole.UNIQUE
    if is_indexed:
        return KeyRole.INDEX
    return KeyRole.NONE


def _extra(identity: str, generated: str, default_expr: str | None) -> str:
    if identity in _IDENTITY_LABELS:
        return _IDENTITY_LABELS[identity]
    if generated in _GENERATED_KINDS:
        return f"GENERATED ALWAYS AS ({default_expr}) {_GENERATED_KINDS[generated]}"
    if default_expr and default_expr.startswith("nextval("):
        return "auto_increment"
    return ""


def describe_table(
    client: PgClient, schema: str, table: str
) -> list[ColumnDescriptor]:
    """Column definitions of a catalog table in physical order."""
    require_table(client, schema, table)
    return _columns(client, schema, table)


def _columns(client: PgClient, schema: str, table: str) -> list[ColumnDescriptor]:
    result = client.execute_query(_COLUMNS_SQL, {"schema": schema, "table": table})

    columns: list[ColumnDescriptor] = []
    for (
        name,
        declared_type,
        nullable,
        default_expr,
        identity,
        generated,
        is_primary,
        is_unique,
        is_indexed,
    ) in result.rows:
        columns.append(
            ColumnDescriptor(
                name=name,
                declared_type=declared_type,
                nullable=bool(nullable),
                key_role=_key_role(is_primary, is_unique, is_indexed),
                default=None if generated in _GENERATED_KINDS else default_expr,
                extra=_extra(identity or "", generated or "", default_expr),
            )
        )
    return columns


def _order_clause(columns: list[ColumnDescriptor]) -> sql.Composable:
    # Primary key order when there is one, physical row order otherwise.
    # Either is stable across pages as long as nobody writes in between.
    pk = [c.name for c in columns if c.key_role is KeyRole.PRIMARY]
    if pk:
        return sql.SQL(", ").join([sql.Identifier(name) for name in pk])
    return sql.SQL("tableoid, ctid")


def read_rows(
    client: PgClient,
    schema: str,
    table: str,
    page: int = 1,
    limit: int = 50,
    *,
    max_page_size: int = 100,
    max_cell_bytes: int = 4096,
) -> RowPage:
    """Fetch one page of a table's rows plus the table's total row count."""
    if page < 1:
        raise InvalidArgumentError("Page must be 1 or greater")
    if not 1 <= limit <= max_page_size:
        raise InvalidArgumentError(f"Limit must be between 1 and {max_page_size}")

    partitioned = _lookup(client, schema, table)
    columns = _columns(client, schema, table)
    names = [c.name for c in columns]
    offset = (page - 1) * limit

    select_list: sql.Composable
    if names:
        select_list = sql.SQL(", ").join([sql.Identifier(n) for n in names])
    else:
        select_list = sql.SQL("")

    query = sql.SQL(
        "SELECT {cols} FROM {table} ORDER BY {order} LIMIT {limit} OFFSET {offset}"
    ).format(
        cols=select_list,
        table=scan_source(schema, table, partitioned),
        order=_order_clause(columns),
        limit=sql.Literal(limit),
        offset=sql.Literal(offset),
    )
    result = client.execute_query(query)
    total = count_rows(client, schema, table, partitioned=partitioned)

    return RowPage(
        columns=names,
        rows=[to_client_row(names, row, max_cell_bytes) for row in result.rows],
        total_row_count=total,
        page=page,
        limit=limit,
    )
