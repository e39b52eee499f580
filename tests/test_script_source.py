"""Tests for SQL text resolution."""

import io
from unittest.mock import patch

import pytest

from tenantdb_tool.core.exceptions import InvalidArgumentError
from tenantdb_tool.core.script_source import resolve_sql_source


@pytest.fixture
def sql_file(tmp_path):
    path = tmp_path / "select_42.sql"
    path.write_text("SELECT 42 AS answer\n", encoding="utf-8")
    return str(path)


@pytest.mark.unit
def test_inline():
    assert resolve_sql_source(inline="SELECT 1", file_path=None) == "SELECT 1"


@pytest.mark.unit
def test_inline_takes_precedence_over_file(sql_file):
    assert resolve_sql_source(inline="SELECT 1", file_path=sql_file) == "SELECT 1"


@pytest.mark.unit
def test_file(sql_file):
    assert resolve_sql_source(inline=None, file_path=sql_file) == "SELECT 42 AS answer\n"


@pytest.mark.unit
def test_file_not_found():
    with pytest.raises(InvalidArgumentError, match="SQL file not found"):
        resolve_sql_source(inline=None, file_path="/nonexistent/file.sql")


@pytest.mark.unit
def test_directory_is_not_a_file(tmp_path):
    with pytest.raises(InvalidArgumentError, match="SQL file not found"):
        resolve_sql_source(inline=None, file_path=str(tmp_path))


@pytest.mark.unit
def test_non_utf8_file(tmp_path):
    path = tmp_path / "latin1.sql"
    path.write_bytes(b"SELECT '\xe9'")
    with pytest.raises(InvalidArgumentError, match="not valid UTF-8"):
        resolve_sql_source(inline=None, file_path=str(path))


@pytest.mark.unit
def test_stdin():
    fake_stdin = io.StringIO("SELECT 99")
    fake_stdin.isatty = lambda: False  # type: ignore[method-assign]
    with patch("sys.stdin", fake_stdin):
        assert resolve_sql_source(inline=None, file_path=None) == "SELECT 99"


@pytest.mark.unit
def test_no_source_on_tty():
    fake_stdin = io.StringIO("")
    fake_stdin.isatty = lambda: True  # type: ignore[method-assign]
    with patch("sys.stdin", fake_stdin):
        with pytest.raises(InvalidArgumentError, match="No SQL provided"):
            resolve_sql_source(inline=None, file_path=None)
