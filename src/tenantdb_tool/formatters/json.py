"""JSON formatter: a list of row objects with keys in column order."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from tenantdb_tool.formatters.base import registry

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tenantdb_tool.formatters.base import Tabular


class JSONFormatter:
    def __init__(self, compact: bool = False) -> None:
        self.compact = compact

    def format(self, data: Tabular) -> Iterator[str]:
        rows = [{c: row.get(c) for c in data.columns} for row in data.rows]
        if self.compact:
            yield json.dumps(rows, default=str, ensure_ascii=False)
        else:
            yield json.dumps(rows, indent=2, default=str, ensure_ascii=False)


registry.register("json", JSONFormatter)
