"""Tests for client value coercion."""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from tenantdb_tool.core.values import (
    dedupe_column_names,
    to_client_row,
    to_client_value,
)


@pytest.mark.unit
class TestToClientValue:
    def test_none_stays_none(self):
        assert to_client_value(None) is None

    def test_string_passthrough(self):
        assert to_client_value("héllo") == "héllo"

    def test_numbers_become_text(self):
        assert to_client_value(3) == "3"
        assert to_client_value(Decimal("1.50")) == "1.50"
        assert to_client_value(2.5) == "2.5"

    def test_booleans(self):
        assert to_client_value(True) == "true"
        assert to_client_value(False) == "false"

    def test_utf8_bytes_decode(self):
        assert to_client_value(b"abc") == "abc"
        assert to_client_value(memoryview(b"abc")) == "abc"

    def test_binary_bytes_become_hex(self):
        assert to_client_value(b"\xff\x00\x01") == "\\xff0001"

    def test_binary_truncated_with_marker(self):
        value = to_client_value(b"a" * 100, max_bytes=16)
        assert value == "a" * 16 + "…[truncated 100 bytes]"

    def test_binary_at_limit_not_truncated(self):
        assert to_client_value(b"a" * 16, max_bytes=16) == "a" * 16

    def test_json_values(self):
        assert to_client_value({"a": [1, 2]}) == '{"a": [1, 2]}'
        assert to_client_value([1, None, "x"]) == '[1, null, "x"]'

    def test_temporal_values(self):
        assert to_client_value(date(2024, 1, 2)) == "2024-01-02"
        ts = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert to_client_value(ts) == "2024-01-02T03:04:05+00:00"

    def test_uuid(self):
        uid = UUID("12345678-1234-5678-1234-567812345678")
        assert to_client_value(uid) == "12345678-1234-5678-1234-567812345678"


@pytest.mark.unit
class TestToClientRow:
    def test_keys_follow_columns(self):
        row = to_client_row(["b", "a"], (1, None))
        assert list(row) == ["b", "a"]
        assert row == {"b": "1", "a": None}

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            to_client_row(["a"], (1, 2))


@pytest.mark.unit
class TestDedupeColumnNames:
    def test_unique_names_unchanged(self):
        assert dedupe_column_names(["a", "b"]) == ["a", "b"]

    def test_duplicates_suffixed(self):
        assert dedupe_column_names(["a", "a", "a"]) == ["a", "a_2", "a_3"]

    def test_suffix_skips_existing_names(self):
        assert dedupe_column_names(["a", "a", "a_2"]) == ["a", "a_3", "a_2"]

    def test_empty(self):
        assert dedupe_column_names([]) == []
