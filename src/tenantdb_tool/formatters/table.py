"""Rich table formatter."""

from __future__ import annotations

import shutil
from io import StringIO
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tenantdb_tool.formatters.base import registry

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tenantdb_tool.formatters.base import Tabular

_NO_RESULTS = "No results"
_NULL = "NULL"


def _cell(value: Any, width: int) -> str:
    text = _NULL if value is None else str(value)
    if len(text) > width:
        text = text[: width - 1] + "…"
    return escape(text)


class TableFormatter:
    def __init__(self, width: int = 40) -> None:
        self.width = width

    def format(self, data: Tabular) -> Iterator[str]:
        if not data.rows:
            yield _NO_RESULTS
            return

        table = Table(show_edge=True, pad_edge=True)
        for name in data.columns:
            table.add_column(escape(name), no_wrap=True)
        for row in data.rows:
            table.add_row(*(_cell(row.get(c), self.width) for c in data.columns))

        buf = StringIO()
        term_width = shutil.get_terminal_size((120, 24)).columns
        console = Console(file=buf, force_terminal=True, width=term_width)
        console.print(table)
        yield buf.getvalue().rstrip("\n")


registry.register("table", TableFormatter)
