"""SQL dump export for a tenant database.

The dump is plain SQL that import_script() can replay into an empty database
of the same engine:

1. header comments
2. DROP ... IF EXISTS for every table, standalone sequence and type
3. enum, domain and composite types, standalone sequences
4. per table its owned sequences, then CREATE TABLE in catalog order
   (partitions and inheritance children after their parents)
5. batched multi-row INSERTs per table, each read with ONLY
6. sequence positions (setval)
7. foreign keys and secondary indexes

Foreign keys go last so that table and data order never matters on restore.
Values are read as text and written as quoted literals; PostgreSQL casts the
untyped literal to the column type on insert, which covers every type with a
text representation (bytea, arrays, json, ranges, ...).
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, NamedTuple

import structlog
from psycopg import sql

from tenantdb_tool.__about__ import __version__
from tenantdb_tool.core.catalog import describe_table, qualified, scan_source

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tenantdb_tool.core.client import PgClient
    from tenantdb_tool.core.models import ColumnDescriptor

_TABLE_META_SQL = """
SELECT
    c.relname AS name,
    c.relkind AS kind,
    CASE WHEN c.relkind = 'p' THEN pg_catalog.pg_get_partkeydef(c.oid) END AS partition_key,
    CASE WHEN c.relispartition
        THEN pg_catalog.pg_get_expr(c.relpartbound, c.oid) END AS partition_bound,
    ARRAY(
        SELECT p.relname::text
        FROM pg_catalog.pg_inherits inh
        JOIN pg_catalog.pg_class p ON p.oid = inh.inhparent
        WHERE inh.inhrelid = c.oid
        ORDER BY inh.inhseqno
    ) AS parents
FROM pg_catalog.pg_class c
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = %(schema)s
  AND c.relkind IN ('r', 'p')
ORDER BY c.relname
"""

_CONSTRAINTS_SQL = """
SELECT con.conname, con.contype, pg_catalog.pg_get_constraintdef(con.oid, true)
FROM pg_catalog.pg_constraint con
JOIN pg_catalog.pg_class c ON c.oid = con.conrelid
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = %(schema)s
  AND c.relname = %(table)s
  AND con.contype IN ('p', 'u', 'c', 'x', 'f')
  AND con.conislocal
ORDER BY con.contype <> 'p', con.conname
"""

_INDEXES_SQL = """
SELECT pg_catalog.pg_get_indexdef(i.indexrelid)
FROM pg_catalog.pg_index i
JOIN pg_catalog.pg_class c ON c.oid = i.indrelid
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = %(schema)s
  AND c.relname = %(table)s
  AND NOT EXISTS (
      SELECT 1 FROM pg_catalog.pg_constraint con
      WHERE con.conindid = i.indexrelid
        AND con.conrelid = c.oid
        AND con.contype IN ('p', 'u', 'x')
  )
  AND NOT EXISTS (
      SELECT 1 FROM pg_catalog.pg_inherits inh WHERE inh.inhrelid = i.indexrelid
  )
ORDER BY 1
"""

_SEQUENCES_SQL = """
SELECT s.relname AS sequence, a.attname AS column, d.deptype
FROM pg_catalog.pg_depend d
JOIN pg_catalog.pg_class s ON s.oid = d.objid AND s.relkind = 'S'
JOIN pg_catalog.pg_class t ON t.oid = d.refobjid
JOIN pg_catalog.pg_namespace n ON n.oid = t.relnamespace
JOIN pg_catalog.pg_attribute a ON a.attrelid = t.oid AND a.attnum = d.refobjsubid
WHERE d.classid = 'pg_catalog.pg_class'::regclass
  AND d.refclassid = 'pg_catalog.pg_class'::regclass
  AND d.deptype IN ('a', 'i')
  AND n.nspname = %(schema)s
  AND t.relname = %(table)s
ORDER BY a.attnum
"""

# Objects that belong to an installed extension come back with the extension.
_NOT_EXTENSION_MEMBER = """
  AND NOT EXISTS (
      SELECT 1 FROM pg_catalog.pg_depend d
      WHERE d.classid = '{catalog}'::regclass AND d.objid = {oid} AND d.deptype = 'e'
  )"""

_ENUMS_SQL = (
    """
SELECT
    t.typname AS name,
    ARRAY(
        SELECT e.enumlabel::text
        FROM pg_catalog.pg_enum e
        WHERE e.enumtypid = t.oid
        ORDER BY e.enumsortorder
    ) AS labels
FROM pg_catalog.pg_type t
JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace
WHERE n.nspname = %(schema)s
  AND t.typtype = 'e'"""
    + _NOT_EXTENSION_MEMBER.format(catalog="pg_catalog.pg_type", oid="t.oid")
    + "\nORDER BY t.oid\n"
)

_DOMAINS_SQL = (
    """
SELECT
    t.typname AS name,
    pg_catalog.format_type(t.typbasetype, t.typtypmod) AS base_type,
    t.typnotnull AS not_null,
    t.typdefault AS default_expr,
    ARRAY(
        SELECT 'CONSTRAINT ' || pg_catalog.quote_ident(con.conname) || ' '
            || pg_catalog.pg_get_constraintdef(con.oid, true)
        FROM pg_catalog.pg_constraint con
        WHERE con.contypid = t.oid AND con.contype = 'c'
        ORDER BY con.conname
    ) AS checks
FROM pg_catalog.pg_type t
JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace
WHERE n.nspname = %(schema)s
  AND t.typtype = 'd'"""
    + _NOT_EXTENSION_MEMBER.format(catalog="pg_catalog.pg_type", oid="t.oid")
    + "\nORDER BY t.oid\n"
)

_COMPOSITES_SQL = (
    """
SELECT
    t.typname AS name,
    ARRAY(
        SELECT pg_catalog.quote_ident(a.attname) || ' '
            || pg_catalog.format_type(a.atttypid, a.atttypmod)
        FROM pg_catalog.pg_attribute a
        WHERE a.attrelid = t.typrelid AND a.attnum > 0 AND NOT a.attisdropped
        ORDER BY a.attnum
    ) AS attributes
FROM pg_catalog.pg_type t
JOIN pg_catalog.pg_class c ON c.oid = t.typrelid AND c.relkind = 'c'
JOIN pg_catalog.pg_namespace n ON n.oid = t.typnamespace
WHERE n.nspname = %(schema)s
  AND t.typtype = 'c'"""
    + _NOT_EXTENSION_MEMBER.format(catalog="pg_catalog.pg_type", oid="t.oid")
    + "\nORDER BY t.oid\n"
)

# Sequences not owned by a column: serial and identity sequences are dumped
# with their table.
_STANDALONE_SEQUENCES_SQL = """
SELECT
    c.relname AS name,
    pg_catalog.format_type(s.seqtypid, NULL) AS data_type,
    s.seqstart,
    s.seqincrement,
    s.seqmin,
    s.seqmax,
    s.seqcache,
    s.seqcycle
FROM pg_catalog.pg_sequence s
JOIN pg_catalog.pg_class c ON c.oid = s.seqrelid
JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
WHERE n.nspname = %(schema)s
  AND NOT EXISTS (
      SELECT 1 FROM pg_catalog.pg_depend d
      WHERE d.classid = 'pg_catalog.pg_class'::regclass
        AND d.objid = c.oid
        AND d.deptype IN ('a', 'i', 'e')
  )
ORDER BY c.relname
"""


class _TypeDef(NamedTuple):
    kind: str
    name: str
    create: str


class _StandaloneSequence(NamedTuple):
    name: str
    data_type: str
    start: int
    increment: int
    minimum: int
    maximum: int
    cache: int
    cycle: bool


class _Sequence(NamedTuple):
    name: str
    column: str
    serial: bool


class _TableMeta(NamedTuple):
    name: str
    partitioned: bool
    partition_key: str | None
    partition_bound: str | None
    parents: tuple[str, ...]


def dump_filename(database_name: str, now: datetime | None = None) -> str:
    """Download filename for a dump: ``<database>_<YYYYmmdd_HHMMSS>.sql``."""
    now = now or datetime.now(UTC)
    return f"{database_name}_{now:%Y%m%d_%H%M%S}.sql"


def _table_meta(client: PgClient, schema: str) -> list[_TableMeta]:
    result = client.execute_query(_TABLE_META_SQL, {"schema": schema})
    return [
        _TableMeta(
            name=name,
            partitioned=kind == "p",
            partition_key=partition_key,
            partition_bound=partition_bound,
            parents=tuple(parents or ()),
        )
        for name, kind, partition_key, partition_bound, parents in result.rows
    ]


def _creation_order(tables: list[_TableMeta]) -> list[_TableMeta]:
    """Catalog order, except that a child always follows its parents."""
    names = {t.name for t in tables}
    ordered: list[_TableMeta] = []
    placed: set[str] = set()
    pending = list(tables)
    while pending:
        rest: list[_TableMeta] = []
        for t in pending:
            if all(p in placed or p not in names for p in t.parents):
                ordered.append(t)
                placed.add(t.name)
            else:
                rest.append(t)
        if len(rest) == len(pending):
            ordered.extend(rest)
            break
        pending = rest
    return ordered


def _schema_types(client: PgClient, schema: str) -> list[_TypeDef]:
    """User-defined types in creation order: enums, domains, composites."""
    types: list[_TypeDef] = []

    result = client.execute_query(_ENUMS_SQL, {"schema": schema})
    for name, labels in result.rows:
        query = sql.SQL("CREATE TYPE {} AS ENUM ({})").format(
            sql.Identifier(name),
            sql.SQL(", ").join([sql.Literal(label) for label in labels or ()]),
        )
        types.append(_TypeDef("TYPE", name, client.render(query)))

    result = client.execute_query(_DOMAINS_SQL, {"schema": schema})
    for name, base_type, not_null, default_expr, checks in result.rows:
        parts: list[sql.Composable] = [
            sql.SQL("CREATE DOMAIN {} AS {}").format(
                sql.Identifier(name), sql.SQL(base_type)
            )
        ]
        if default_expr is not None:
            parts.append(sql.SQL("DEFAULT " + default_expr))
        if not_null:
            parts.append(sql.SQL("NOT NULL"))
        parts.extend(sql.SQL(check) for check in checks or ())
        types.append(_TypeDef("DOMAIN", name, client.render(sql.SQL(" ").join(parts))))

    result = client.execute_query(_COMPOSITES_SQL, {"schema": schema})
    for name, attributes in result.rows:
        query = sql.SQL("CREATE TYPE {} AS ({})").format(
            sql.Identifier(name),
            sql.SQL(", ").join([sql.SQL(a) for a in attributes or ()]),
        )
        types.append(_TypeDef("TYPE", name, client.render(query)))

    return types


def _standalone_sequences(client: PgClient, schema: str) -> list[_StandaloneSequence]:
    result = client.execute_query(_STANDALONE_SEQUENCES_SQL, {"schema": schema})
    return [_StandaloneSequence(*row) for row in result.rows]


def _create_sequence(client: PgClient, seq: _StandaloneSequence) -> str:
    query = sql.SQL(
        "CREATE SEQUENCE {name} AS {data_type} INCREMENT BY {increment}"
        " MINVALUE {minimum} MAXVALUE {maximum} START WITH {start}"
        " CACHE {cache} {cycle}"
    ).format(
        name=sql.Identifier(seq.name),
        data_type=sql.SQL(seq.data_type),
        increment=sql.Literal(seq.increment),
        minimum=sql.Literal(seq.minimum),
        maximum=sql.Literal(seq.maximum),
        start=sql.Literal(seq.start),
        cache=sql.Literal(seq.cache),
        cycle=sql.SQL("CYCLE" if seq.cycle else "NO CYCLE"),
    )
    return client.render(query) + ";\n"


def _sequence_state(
    client: PgClient, schema: str, name: str
) -> tuple[int, bool] | None:
    state = client.execute_query(
        sql.SQL("SELECT last_value, is_called FROM {}").format(qualified(schema, name))
    )
    if not state.rows:
        return None
    last_value, is_called = state.rows[0]
    return last_value, bool(is_called)


def _setval_standalone(
    client: PgClient, schema: str, seq: _StandaloneSequence
) -> str | None:
    state = _sequence_state(client, schema, seq.name)
    if state is None:
        return None
    query = sql.SQL("SELECT pg_catalog.setval({}, {}, {})").format(
        sql.Literal(client.render(sql.Identifier(seq.name))),
        sql.Literal(state[0]),
        sql.Literal(state[1]),
    )
    return client.render(query) + ";\n"


def _sequences(client: PgClient, schema: str, table: str) -> list[_Sequence]:
    result = client.execute_query(_SEQUENCES_SQL, {"schema": schema, "table": table})
    return [
        _Sequence(name=seq, column=col, serial=deptype == "a")
        for seq, col, deptype in result.rows
    ]


def _column_def(column: ColumnDescriptor) -> sql.Composable:
    parts: list[sql.Composable] = [
        sql.Identifier(column.name),
        sql.SQL(column.declared_type),
    ]
    if column.extra.startswith("GENERATED"):
        parts.append(sql.SQL(column.extra))
    elif column.default is not None:
        parts.append(sql.SQL("DEFAULT " + column.default))
    if not column.nullable:
        parts.append(sql.SQL("NOT NULL"))
    return sql.SQL(" ").join(parts)


def _create_table(
    client: PgClient,
    meta: _TableMeta,
    columns: list[ColumnDescriptor],
    constraints: list[tuple[str, str, str]],
) -> str:
    table = sql.Identifier(meta.name)
    inline = [
        sql.SQL("CONSTRAINT {} {}").format(sql.Identifier(name), sql.SQL(definition))
        for name, contype, definition in constraints
        if contype != "f"
    ]

    if meta.parents and meta.partition_bound is not None:
        body = sql.SQL("")
        if inline:
            body = sql.SQL(" (\n    {}\n)").format(sql.SQL(",\n    ").join(inline))
        query = sql.SQL("CREATE TABLE {table} PARTITION OF {parent}{body} {bound}").format(
            table=table,
            parent=sql.Identifier(meta.parents[0]),
            body=body,
            bound=sql.SQL(meta.partition_bound),
        )
    else:
        elements = [_column_def(c) for c in columns] + inline
        query = sql.SQL("CREATE TABLE {table} (\n    {elements}\n)").format(
            table=table,
            elements=sql.SQL(",\n    ").join(elements),
        )
        if meta.parents:
            query = sql.SQL("{} INHERITS ({})").format(
                query, sql.SQL(", ").join([sql.Identifier(p) for p in meta.parents])
            )
    if meta.partition_key:
        query = sql.Composed([query, sql.SQL(" PARTITION BY " + meta.partition_key)])
    return client.render(query) + ";\n"


def _insert_batches(
    client: PgClient,
    schema: str,
    table: str,
    columns: list[ColumnDescriptor],
    batch_size: int,
    timeout: float | None,
) -> Iterator[str]:
    insertable = [c for c in columns if not c.extra.startswith("GENERATED ALWAYS AS (")]
    if not insertable:
        return

    names = [sql.Identifier(c.name) for c in insertable]
    select = sql.SQL("SELECT {cols} FROM {table}").format(
        cols=sql.SQL(", ").join([sql.SQL("{}::text").format(n) for n in names]),
        table=scan_source(schema, table),
    )
    overriding = any(c.extra == "GENERATED ALWAYS AS IDENTITY" for c in insertable)
    prefix = sql.SQL("INSERT INTO {table} ({cols}){overriding} VALUES").format(
        table=sql.Identifier(table),
        cols=sql.SQL(", ").join(names),
        overriding=sql.SQL(" OVERRIDING SYSTEM VALUE" if overriding else ""),
    )

    for batch in client.stream_batches(select, batch_size, timeout=timeout):
        tuples = [
            sql.SQL("({})").format(sql.SQL(", ").join([sql.Literal(v) for v in row]))
            for row in batch
        ]
        statement = sql.Composed([prefix, sql.SQL("\n"), sql.SQL(",\n").join(tuples)])
        yield client.render(statement) + ";\n"


def _setval(client: PgClient, schema: str, table: str, seq: _Sequence) -> str | None:
    state = _sequence_state(client, schema, seq.name)
    if state is None:
        return None
    last_value, is_called = state
    query = sql.SQL(
        "SELECT pg_catalog.setval(pg_catalog.pg_get_serial_sequence({table}, {column}), "
        "{value}, {called})"
    ).format(
        table=sql.Literal(client.render(sql.Identifier(table))),
        column=sql.Literal(seq.column),
        value=sql.Literal(last_value),
        called=sql.Literal(is_called),
    )
    return client.render(query) + ";\n"


def export_database(
    client: PgClient,
    schema: str = "public",
    *,
    database_name: str | None = None,
    batch_size: int = 100,
    timeout: float | None = None,
    now: datetime | None = None,
) -> Iterator[str]:
    """Yield the dump of ``schema`` as SQL text chunks.

    An empty schema yields only the header, which is still a valid script.
    """
    log = structlog.get_logger()
    now = now or datetime.now(UTC)
    tables = _table_meta(client, schema)
    types = _schema_types(client, schema)
    standalone = _standalone_sequences(client, schema)
    log.info(
        "export started",
        tables=len(tables),
        types=len(types),
        sequences=len(standalone),
    )

    yield "-- tenantdb-tool database export\n"
    yield f"-- Database: {database_name or client.tenant.database_name}\n"
    yield f"-- Generated: {now.isoformat(timespec='seconds')}\n"
    yield f"-- Tool version: {__version__}\n"
    yield f"-- Tables: {len(tables)}\n\n"

    if not (tables or types or standalone):
        return

    columns: dict[str, list[ColumnDescriptor]] = {}
    constraints: dict[str, list[tuple[str, str, str]]] = {}
    sequences: dict[str, list[_Sequence]] = {}
    for meta in tables:
        columns[meta.name] = describe_table(client, schema, meta.name)
        result = client.execute_query(
            _CONSTRAINTS_SQL, {"schema": schema, "table": meta.name}
        )
        constraints[meta.name] = [tuple(row) for row in result.rows]  # type: ignore[misc]
        sequences[meta.name] = _sequences(client, schema, meta.name)

    for meta in tables:
        yield client.render(
            sql.SQL("DROP TABLE IF EXISTS {} CASCADE").format(sql.Identifier(meta.name))
        ) + ";\n"
    for seq in standalone:
        yield client.render(
            sql.SQL("DROP SEQUENCE IF EXISTS {} CASCADE").format(sql.Identifier(seq.name))
        ) + ";\n"
    for typ in reversed(types):
        yield client.render(
            sql.SQL("DROP {} IF EXISTS {} CASCADE").format(
                sql.SQL(typ.kind), sql.Identifier(typ.name)
            )
        ) + ";\n"
    yield "\n"

    if types or standalone:
        yield "-- Types and sequences\n"
        for typ in types:
            yield typ.create + ";\n"
        for seq in standalone:
            yield _create_sequence(client, seq)
        yield "\n"

    for meta in _creation_order(tables):
        yield f"-- Table: {meta.name}\n"
        for seq in sequences[meta.name]:
            if seq.serial:
                yield client.render(
                    sql.SQL("CREATE SEQUENCE IF NOT EXISTS {}").format(
                        sql.Identifier(seq.name)
                    )
                ) + ";\n"
        yield _create_table(
            client, meta, columns[meta.name], constraints[meta.name]
        )
        for seq in sequences[meta.name]:
            if seq.serial:
                yield client.render(
                    sql.SQL("ALTER SEQUENCE {} OWNED BY {}").format(
                        sql.Identifier(seq.name),
                        sql.Identifier(meta.name, seq.column),
                    )
                ) + ";\n"
        yield "\n"

    for meta in tables:
        if meta.partitioned:
            # Rows of a partitioned table live in (and are dumped with) its partitions.
            continue
        rows_written = False
        for chunk in _insert_batches(
            client, schema, meta.name, columns[meta.name], batch_size, timeout
        ):
            if not rows_written:
                yield f"-- Data: {meta.name}\n"
                rows_written = True
            yield chunk
        if rows_written:
            yield "\n"

    setvals = [
        stmt
        for seq in standalone
        if (stmt := _setval_standalone(client, schema, seq)) is not None
    ] + [
        stmt
        for meta in tables
        for seq in sequences[meta.name]
        if (stmt := _setval(client, schema, meta.name, seq)) is not None
    ]
    if setvals:
        yield "-- Sequences\n"
        yield from setvals
        yield "\n"

    trailing: list[str] = []
    for meta in tables:
        for name, contype, definition in constraints[meta.name]:
            if contype == "f":
                trailing.append(
                    client.render(
                        sql.SQL("ALTER TABLE {} ADD CONSTRAINT {} {}").format(
                            sql.Identifier(meta.name),
                            sql.Identifier(name),
                            sql.SQL(definition),
                        )
                    )
                    + ";\n"
                )
        result = client.execute_query(
            _INDEXES_SQL, {"schema": schema, "table": meta.name}
        )
        trailing.extend(row[0] + ";\n" for row in result.rows)
    if trailing:
        yield "-- Constraints and indexes\n"
        yield from trailing

    log.info("export finished", tables=len(tables))
