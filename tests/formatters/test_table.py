"""Tests for TableFormatter."""

import pytest

from tenantdb_tool.core.models import Grid
from tenantdb_tool.formatters.base import Formatter
from tenantdb_tool.formatters.table import TableFormatter


def _grid(rows=None, columns=None):
    columns = columns or ["id", "name"]
    if rows is None:
        rows = [{"id": "1", "name": "alice"}, {"id": "2", "name": "bob"}]
    return Grid(columns=columns, rows=rows)


@pytest.mark.unit
def test_table_formatter_implements_protocol():
    assert isinstance(TableFormatter(), Formatter)


@pytest.mark.unit
def test_table_formatter_outputs_headers_and_values():
    output = "\n".join(TableFormatter().format(_grid()))
    for text in ("id", "name", "alice", "bob"):
        assert text in output


@pytest.mark.unit
def test_table_formatter_empty_result_shows_no_results():
    assert list(TableFormatter().format(_grid(rows=[]))) == ["No results"]


@pytest.mark.unit
def test_table_formatter_truncates_wide_values():
    grid = _grid(rows=[{"id": "1", "name": "x" * 60}])
    output = "\n".join(TableFormatter(width=10).format(grid))
    assert "x" * 60 not in output
    assert "x" * 9 + "…" in output


@pytest.mark.unit
def test_table_formatter_shows_null():
    output = "\n".join(TableFormatter().format(_grid(rows=[{"id": "1", "name": None}])))
    assert "NULL" in output


@pytest.mark.unit
def test_table_formatter_does_not_interpret_markup():
    output = "\n".join(TableFormatter().format(_grid(rows=[{"id": "1", "name": "[bold]x[/bold]"}])))
    assert "[bold]x[/bold]" in output
