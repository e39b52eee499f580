"""Bulk SQL script import.

Scripts are split into statements on ``;`` outside of quoted text and
comments, then executed one by one in autocommit mode. A statement that fails
is recorded and the import moves on; there is no rollback and no batch abort.
Losing the connection is the one failure that stops the run, since every
statement after it would fail the same way.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog

from tenantdb_tool.core.exceptions import (
    DeadlineExceededError,
    ExecutionError,
    InvalidArgumentError,
    NetworkError,
)
from tenantdb_tool.core.models import ImportOutcome, StatementError

if TYPE_CHECKING:
    from tenantdb_tool.core.client import PgClient

_DOLLAR_TAG = re.compile(r"\$([A-Za-z_\u0080-\uffff][A-Za-z0-9_\u0080-\uffff]*)?\$")


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def _skip_quoted(script: str, i: int, quote: str, backslash_escapes: bool) -> int:
    """Return the index just past the literal opened at script[i]."""
    n = len(script)
    i += 1
    while i < n:
        ch = script[i]
        if backslash_escapes and ch == "\\":
            i += 2
            continue
        if ch == quote:
            if i + 1 < n and script[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def _skip_block_comment(script: str, i: int) -> int:
    n = len(script)
    depth = 0
    while i < n:
        if script.startswith("/*", i):
            depth += 1
            i += 2
        elif script.startswith("*/", i):
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return n


def split_statements(script: str) -> list[str]:
    """Split a SQL script into statements.

    ``;`` inside single-quoted and E'' literals, double-quoted identifiers,
    dollar-quoted bodies and comments is not a separator. Chunks holding
    nothing but whitespace and comments are dropped. The last statement
    does not need a terminating ``;``.
    """
    statements: list[str] = []
    n = len(script)
    start = 0
    has_content = False
    i = 0

    while i < n:
        ch = script[i]

        if ch == "-" and script.startswith("--", i):
            newline = script.find("\n", i)
            i = n if newline == -1 else newline + 1
            continue

        if ch == "/" and script.startswith("/*", i):
            i = _skip_block_comment(script, i)
            continue

        if ch == ";":
            if has_content:
                statements.append(script[start:i].strip())
            start = i + 1
            has_content = False
            i += 1
            continue

        if ch.isspace():
            i += 1
            continue

        has_content = True
        prev = script[i - 1] if i > 0 else ""

        if ch == "'":
            escaped = prev in ("E", "e") and (i < 2 or not _is_ident_char(script[i - 2]))
            i = _skip_quoted(script, i, "'", backslash_escapes=escaped)
            continue

        if ch == '"':
            i = _skip_quoted(script, i, '"', backslash_escapes=False)
            continue

        if ch == "$" and not _is_ident_char(prev):
            match = _DOLLAR_TAG.match(script, i)
            if match:
                tag = match.group(0)
                close = script.find(tag, match.end())
                i = n if close == -1 else close + len(tag)
                continue

        i += 1

    if has_content:
        statements.append(script[start:].strip())
    return statements


def import_script(
    client: PgClient,
    script: str,
    *,
    statement_timeout: float | None = None,
) -> ImportOutcome:
    """Execute every statement of ``script`` in order, continuing past errors.

    statement_index in the recorded errors is 1-based.
    """
    statements = split_statements(script or "")
    if not statements:
        raise InvalidArgumentError("SQL script contains no statements")

    log = structlog.get_logger()
    errors: list[StatementError] = []
    succeeded = 0
    aborted = False

    # Failing to connect at all is an error of the call, not of a statement.
    client.connect()

    log.info("import started", statements=len(statements))
    for index, statement in enumerate(statements, start=1):
        try:
            client.execute_query(statement, timeout=statement_timeout)
        except (ExecutionError, DeadlineExceededError) as e:
            errors.append(StatementError(statement_index=index, message=e.message))
            log.warning("import statement failed", index=index, error=e.message)
            continue
        except NetworkError as e:
            errors.append(StatementError(statement_index=index, message=e.message))
            aborted = True
            log.error(
                "import aborted",
                index=index,
                remaining=len(statements) - index,
                error=e.message,
            )
            break
        succeeded += 1

    if not aborted and client.rollback_open_transaction():
        errors.append(
            StatementError(
                statement_index=len(statements),
                message="transaction block left open at end of script was rolled back",
            )
        )
        log.warning("import left a transaction open", index=len(statements))

    outcome = ImportOutcome(
        statements_total=len(statements),
        statements_succeeded=succeeded,
        errors=errors,
        aborted=aborted,
    )
    log.info(
        "import finished",
        total=outcome.statements_total,
        succeeded=outcome.statements_succeeded,
        failed=len(errors),
        aborted=aborted,
    )
    return outcome
