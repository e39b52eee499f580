"""Tests for the destructive reset."""

import pytest
from conftest import rows_result, write_result

from tenantdb_tool.core import catalog
from tenantdb_tool.core.exceptions import DeadlineExceededError, ExecutionError
from tenantdb_tool.core.reset import reset_database


def reset_responder(tables, failures=None):
    failures = failures or {}

    def respond(text, params):
        if text == catalog._TABLE_NAMES_SQL:
            return rows_result(["relname", "partitioned"], [(t, False) for t in tables])
        for table, error in failures.items():
            if text.endswith(f'."{table}" CASCADE'):
                return error
        if text.startswith("DROP TABLE IF EXISTS"):
            return write_result("DROP TABLE")
        raise AssertionError(f"unexpected SQL: {text}")

    return respond


@pytest.mark.unit
class TestResetDatabase:
    def test_drops_every_table(self, make_client):
        client = make_client(reset_responder(["posts", "users"]))
        outcome = reset_database(client)

        assert outcome.dropped_table_count == 2
        assert outcome.errors == []
        assert client.executed[1:] == [
            'DROP TABLE IF EXISTS "public"."posts" CASCADE',
            'DROP TABLE IF EXISTS "public"."users" CASCADE',
        ]

    def test_empty_database(self, make_client):
        client = make_client(reset_responder([]))
        outcome = reset_database(client)
        assert outcome.dropped_table_count == 0
        assert outcome.errors == []

    def test_failures_recorded_and_remaining_tables_dropped(self, make_client):
        client = make_client(
            reset_responder(
                ["a", "b", "c"],
                failures={
                    "b": ExecutionError("must be owner of table b"),
                    "c": DeadlineExceededError("Query timed out after 30.0s"),
                },
            )
        )
        outcome = reset_database(client)

        assert outcome.dropped_table_count == 1
        assert [(e.table, e.message) for e in outcome.errors] == [
            ("b", "must be owner of table b"),
            ("c", "Query timed out after 30.0s"),
        ]

    def test_custom_schema(self, make_client):
        client = make_client(reset_responder(["t"]))
        reset_database(client, "tenant")
        assert client.executed[-1] == 'DROP TABLE IF EXISTS "tenant"."t" CASCADE'

    def test_quoted_table_names(self, make_client):
        client = make_client(reset_responder(['odd"name']))
        reset_database(client)
        assert client.executed[-1] == 'DROP TABLE IF EXISTS "public"."odd""name" CASCADE'
