"""Tests for result models."""

import pytest
from pydantic import TypeAdapter, ValidationError

from tenantdb_tool.core.models import (
    ColumnDescriptor,
    Grid,
    ImportOutcome,
    KeyRole,
    QueryResult,
    ReadResult,
    ResetOutcome,
    RowPage,
    StatementError,
    TableError,
    WriteResult,
)

query_result = TypeAdapter(QueryResult)


@pytest.mark.unit
class TestRowPage:
    def test_valid_page(self):
        page = RowPage(
            columns=["id", "name"],
            rows=[{"id": "1", "name": "a"}, {"id": "2", "name": None}],
            total_row_count=2,
            page=1,
            limit=50,
        )
        assert page.rows[1]["name"] is None

    def test_row_keys_must_match_columns(self):
        with pytest.raises(ValidationError, match="do not match columns"):
            RowPage(
                columns=["id", "name"],
                rows=[{"name": "a", "id": "1"}],
                total_row_count=1,
                page=1,
                limit=50,
            )

    def test_missing_key_rejected(self):
        with pytest.raises(ValidationError):
            RowPage(columns=["id"], rows=[{}], total_row_count=1, page=1, limit=1)


@pytest.mark.unit
class TestQueryResult:
    def test_read_discriminator(self):
        result = query_result.validate_python(
            {"kind": "read", "columns": ["c"], "rows": [{"c": "3"}], "duration_ms": 1.0}
        )
        assert isinstance(result, ReadResult)
        assert result.truncated is False

    def test_write_discriminator(self):
        result = query_result.validate_python(
            {"kind": "write", "rows_affected": 2, "duration_ms": 0}
        )
        assert isinstance(result, WriteResult)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            query_result.validate_python({"kind": "both", "duration_ms": 0})

    def test_negative_duration_rejected(self):
        with pytest.raises(ValidationError):
            WriteResult(rows_affected=0, duration_ms=-1)

    def test_serializes_kind(self):
        data = ReadResult(columns=[], rows=[], duration_ms=0).model_dump()
        assert data["kind"] == "read"


@pytest.mark.unit
class TestOutcomes:
    def test_import_success(self):
        outcome = ImportOutcome(statements_total=2, statements_succeeded=2)
        assert outcome.success is True
        assert outcome.model_dump()["success"] is True

    def test_import_with_errors(self):
        outcome = ImportOutcome(
            statements_total=3,
            statements_succeeded=2,
            errors=[StatementError(statement_index=2, message="syntax error")],
        )
        assert outcome.success is False

    def test_import_aborted(self):
        outcome = ImportOutcome(statements_total=3, statements_succeeded=3, aborted=True)
        assert outcome.success is False

    def test_reset_defaults(self):
        outcome = ResetOutcome(dropped_table_count=2)
        assert outcome.errors == []


@pytest.mark.unit
class TestDescriptors:
    def test_key_role_values(self):
        assert [r.value for r in KeyRole] == ["none", "primary", "unique", "index"]

    def test_column_descriptor_defaults(self):
        col = ColumnDescriptor(name="id", declared_type="integer", nullable=False)
        assert col.key_role is KeyRole.NONE
        assert col.default is None
        assert col.extra == ""


@pytest.mark.unit
class TestGrid:
    def test_from_models_selects_columns_in_order(self):
        errors = [
            TableError(table="posts", message="boom"),
            TableError(table="users", message="bang"),
        ]
        grid = Grid.from_models(errors, ["message", "table"])
        assert grid.columns == ["message", "table"]
        assert grid.rows == [
            {"message": "boom", "table": "posts"},
            {"message": "bang", "table": "users"},
        ]
