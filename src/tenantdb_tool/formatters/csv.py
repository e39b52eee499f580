"""CSV formatter (RFC 4180). NULL is written as an empty field."""

from __future__ import annotations

import csv
from io import StringIO
from typing import TYPE_CHECKING, Any

from tenantdb_tool.formatters.base import registry

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tenantdb_tool.formatters.base import Tabular


def _write_row(values: list[Any]) -> str:
    buf = StringIO()
    csv.writer(buf).writerow(["" if v is None else v for v in values])
    return buf.getvalue().rstrip("\r\n")


class CSVFormatter:
    def __init__(self, no_header: bool = False) -> None:
        self.no_header = no_header

    def format(self, data: Tabular) -> Iterator[str]:
        if not self.no_header:
            yield _write_row(list(data.columns))
        for row in data.rows:
            yield _write_row([row.get(c) for c in data.columns])


registry.register("csv", CSVFormatter)
