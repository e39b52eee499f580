"""Tests for tenant credential resolution."""

import pytest

from tenantdb_tool.core.client import PgClient
from tenantdb_tool.core.config import AppConfig, Settings
from tenantdb_tool.core.exceptions import (
    InvalidArgumentError,
    NotFoundError,
    NotProvisionedError,
)
from tenantdb_tool.core.tenants import credentials, open_client, resolve_tenant


@pytest.fixture
def config():
    return AppConfig.model_validate(
        {
            "server": {"host": "pg.internal", "port": 6432, "sslmode": "require"},
            "tenants": {
                "42": {"database": "project_42", "password": "pw42"},
                "7": {
                    "database": "project_7",
                    "user": "owner_7",
                    "host": "pg-7.internal",
                    "port": 5432,
                    "sslmode": "disable",
                },
                "99": {"provisioned": False, "database": "project_99"},
                "100": {},
            },
        }
    )


@pytest.mark.unit
class TestResolveTenant:
    def test_falls_back_to_server_defaults(self, config):
        tenant = resolve_tenant(config, "42")
        assert tenant.project_id == "42"
        assert tenant.host == "pg.internal"
        assert tenant.port == 6432
        assert tenant.sslmode == "require"
        assert tenant.database_name == "project_42"
        assert tenant.password == "pw42"

    def test_username_defaults_to_database_name(self, config):
        assert resolve_tenant(config, "42").username == "project_42"

    def test_explicit_entry_values_win(self, config):
        tenant = resolve_tenant(config, "7")
        assert tenant.host == "pg-7.internal"
        assert tenant.port == 5432
        assert tenant.username == "owner_7"
        assert tenant.sslmode == "disable"
        assert tenant.password is None

    def test_unknown_project(self, config):
        with pytest.raises(NotFoundError, match="Project not found"):
            resolve_tenant(config, "1234")

    def test_not_provisioned(self, config):
        with pytest.raises(NotProvisionedError):
            resolve_tenant(config, "99")

    def test_missing_database_is_not_provisioned(self, config):
        with pytest.raises(NotProvisionedError):
            resolve_tenant(config, "100")

    def test_empty_project_id(self, config):
        with pytest.raises(InvalidArgumentError):
            resolve_tenant(config, "  ")

    def test_tenant_is_frozen(self, config):
        tenant = resolve_tenant(config, "42")
        with pytest.raises(ValueError):
            tenant.host = "elsewhere"


@pytest.mark.unit
class TestCredentials:
    def test_credentials(self, config):
        assert credentials(config, "42") == {
            "host": "pg.internal",
            "port": 6432,
            "database": "project_42",
            "username": "project_42",
            "password": "pw42",
        }

    def test_credentials_unknown_project(self, config):
        with pytest.raises(NotFoundError):
            credentials(config, "nope")


@pytest.mark.unit
class TestOpenClient:
    def test_client_bound_to_resolved_tenant(self, config):
        client = open_client(config, Settings(), "7")
        assert isinstance(client, PgClient)
        assert client.tenant.database_name == "project_7"
        # Nothing is opened until the first statement.
        assert client._connection is None

    def test_unknown_project_never_builds_client(self, config):
        with pytest.raises(NotFoundError):
            open_client(config, Settings(), "1234")
