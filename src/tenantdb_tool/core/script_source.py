"""SQL text resolution for the query and import commands.

Sources, in order of precedence:
1. Inline (-e flag)
2. File path
3. stdin, when it is not a terminal
"""

from __future__ import annotations

import sys
from pathlib import Path

from tenantdb_tool.core.exceptions import InvalidArgumentError


def resolve_sql_source(inline: str | None, file_path: str | None) -> str:
    """Return SQL text from inline, file, or stdin.

    Raises InvalidArgumentError when no source is available or the file is
    missing or unreadable as UTF-8.
    """
    if inline is not None:
        return inline

    if file_path is not None:
        p = Path(file_path)
        if not p.is_file():
            msg = (
                f"SQL file not found: {file_path}\n"
                "Use -e for inline SQL or pipe it via stdin."
            )
            raise InvalidArgumentError(msg)
        try:
            return p.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise InvalidArgumentError(f"SQL file is not valid UTF-8: {file_path}") from e

    if not sys.stdin.isatty():
        return sys.stdin.read()

    raise InvalidArgumentError("No SQL provided. Use -e, a file path, or pipe to stdin.")
