"""Configuration management for tenantdb-tool.

Handles the TOML config file, environment variables, the tenant registry
written by the provisioning system, and settings precedence resolution.

Precedence order (highest to lowest):
1. CLI flags (--timeout, --schema, ...)
2. Environment variables (TENANTDB_STATEMENT_TIMEOUT, ...)
3. Config file values
4. Built-in defaults
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, unquote, urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from tenantdb_tool.core.exceptions import ConfigError, InvalidArgumentError

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "tenantdb-tool" / "config.toml"

CONFIG_PATH_ENV = "TENANTDB_CONFIG"

_VALID_SSLMODES = {
    "disable",
    "allow",
    "prefer",
    "require",
    "verify-ca",
    "verify-full",
}

_VALID_FORMATS = {"table", "csv", "json"}

_SETTINGS_DEFAULTS: dict[str, Any] = {
    "statement_timeout": 30.0,
    "import_statement_timeout": 60.0,
    "export_timeout": 300.0,
    "max_page_size": 100,
    "default_page_size": 50,
    "max_result_rows": 1000,
    "max_cell_bytes": 4096,
    "export_batch_size": 100,
    "exact_count_threshold": 10_000,
    "schema_name": "public",
    "default_format": "table",
}

_SETTINGS_ENV_VARS: dict[str, str] = {
    "TENANTDB_STATEMENT_TIMEOUT": "statement_timeout",
    "TENANTDB_IMPORT_STATEMENT_TIMEOUT": "import_statement_timeout",
    "TENANTDB_MAX_RESULT_ROWS": "max_result_rows",
    "TENANTDB_MAX_PAGE_SIZE": "max_page_size",
    "TENANTDB_SCHEMA": "schema_name",
}


def parse_dsn(dsn: str) -> dict[str, Any]:
    """Supports postgresql:// and postgres:// schemes with query params."""
    parsed = urlparse(dsn)
    if parsed.scheme not in ("postgresql", "postgres"):
        msg = f"Invalid DSN scheme: '{parsed.scheme}'. Expected 'postgresql' or 'postgres'"
        raise ConfigError(msg)

    result: dict[str, Any] = {}
    if parsed.hostname:
        result["host"] = parsed.hostname
    if parsed.port:
        result["port"] = parsed.port
    if parsed.path and parsed.path.strip("/"):
        result["database"] = unquote(parsed.path.strip("/"))
    if parsed.username:
        result["user"] = unquote(parsed.username)
    if parsed.password:
        result["password"] = unquote(parsed.password)
    query_params = parse_qs(parsed.query)
    if "sslmode" in query_params:
        result["sslmode"] = query_params["sslmode"][0]
    return result


def _check_sslmode(v: str | None) -> str | None:
    if v is not None and v not in _VALID_SSLMODES:
        msg = f"Invalid sslmode: '{v}'. Must be one of: {', '.join(sorted(_VALID_SSLMODES))}"
        raise ValueError(msg)
    return v


def _check_port(v: int | None) -> int | None:
    if v is not None and not (1 <= v <= 65535):
        msg = f"Invalid port: {v}. Must be 1-65535"
        raise ValueError(msg)
    return v


class ServerDefaults(BaseModel):
    """Shared database server hosting the tenant databases."""

    host: str = "localhost"
    port: int = 5432
    sslmode: str = "prefer"
    connect_timeout: int = 10
    application_name: str = "tenantdb-tool"

    @field_validator("sslmode")
    @classmethod
    def validate_sslmode(cls, v: str | None) -> str | None:
        return _check_sslmode(v)

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int | None) -> int | None:
        return _check_port(v)


class TenantProfile(BaseModel):
    """One provisioning record: the database belonging to a project."""

    dsn: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    user: str | None = None
    password: str | None = None
    sslmode: str | None = None
    provisioned: bool = True

    @model_validator(mode="before")
    @classmethod
    def parse_dsn_into_components(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("dsn"):
            dsn_fields = parse_dsn(data["dsn"])
            for key, value in dsn_fields.items():
                if key not in data:
                    data[key] = value
        return data

    @field_validator("sslmode")
    @classmethod
    def validate_sslmode(cls, v: str | None) -> str | None:
        return _check_sslmode(v)

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int | None) -> int | None:
        return _check_port(v)


class AppConfig(BaseModel):
    statement_timeout: float = Field(default=30.0, gt=0)
    import_statement_timeout: float = Field(default=60.0, gt=0)
    export_timeout: float = Field(default=300.0, gt=0)
    max_page_size: int = Field(default=100, ge=1)
    default_page_size: int = Field(default=50, ge=1)
    max_result_rows: int = Field(default=1000, ge=1)
    max_cell_bytes: int = Field(default=4096, ge=16)
    export_batch_size: int = Field(default=100, ge=1)
    exact_count_threshold: int = Field(default=10_000, ge=0)
    schema_name: str = Field(default="public", alias="schema")
    default_format: str = "table"
    server: ServerDefaults = ServerDefaults()
    tenants: dict[str, TenantProfile] = {}

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("default_format")
    @classmethod
    def validate_default_format(cls, v: str) -> str:
        if v not in _VALID_FORMATS:
            msg = f"Invalid default_format: '{v}'. Must be one of: {', '.join(sorted(_VALID_FORMATS))}"
            raise ValueError(msg)
        return v

    @model_validator(mode="before")
    @classmethod
    def stringify_tenant_ids(cls, data: Any) -> Any:
        # TOML allows bare integer-looking keys; project ids are always strings.
        if isinstance(data, dict) and isinstance(data.get("tenants"), dict):
            data["tenants"] = {str(k): v for k, v in data["tenants"].items()}
        return data


class Settings(BaseModel):
    """Resolved runtime settings with source attribution."""

    statement_timeout: float = Field(default=30.0, gt=0)
    import_statement_timeout: float = Field(default=60.0, gt=0)
    export_timeout: float = Field(default=300.0, gt=0)
    max_page_size: int = Field(default=100, ge=1)
    default_page_size: int = Field(default=50, ge=1)
    max_result_rows: int = Field(default=1000, ge=1)
    max_cell_bytes: int = Field(default=4096, ge=16)
    export_batch_size: int = Field(default=100, ge=1)
    exact_count_threshold: int = Field(default=10_000, ge=0)
    schema_name: str = "public"
    default_format: str = "table"
    connect_timeout: int = 10
    application_name: str = "tenantdb-tool"
    sources: dict[str, str] = {}


def config_path_from_env(config_path: Path | None = None) -> Path:
    if config_path is not None:
        return config_path
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration from TOML file.

    Returns default AppConfig if file doesn't exist.
    Raises ConfigError on malformed TOML or invalid config.
    """
    config_path = config_path_from_env(config_path)

    if not config_path.exists():
        return AppConfig()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Malformed TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        return AppConfig.model_validate(data)
    except ConfigError:
        raise
    except Exception as e:
        msg = f"Invalid configuration in {config_path}: {e}"
        raise ConfigError(msg) from e


def _coerce_env(env_var: str, field_name: str, value: str) -> Any:
    default = _SETTINGS_DEFAULTS[field_name]
    if isinstance(default, str):
        return value
    try:
        return type(default)(value)
    except ValueError:
        kind = "an integer" if isinstance(default, int) else "a number"
        msg = f"Invalid {env_var} value: '{value}'. Must be {kind}"
        raise ConfigError(msg) from None


def resolve_settings(config: AppConfig, **cli_overrides: Any) -> Settings:
    """Resolve settings using precedence chain.

    CLI > env > config file > built-in defaults.
    """
    sources: dict[str, str] = {}
    resolved: dict[str, Any] = {}

    # Layer 1: Built-in defaults
    resolved.update(_SETTINGS_DEFAULTS)
    for key in resolved:
        sources[key] = "default"

    # Layer 2: Config file
    for key in _SETTINGS_DEFAULTS:
        value = getattr(config, key)
        if value != _SETTINGS_DEFAULTS[key]:
            resolved[key] = value
            sources[key] = "config"

    # Layer 3: Environment variables
    for env_var, field_name in _SETTINGS_ENV_VARS.items():
        value = os.environ.get(env_var)
        if value is not None:
            resolved[field_name] = _coerce_env(env_var, field_name, value)
            sources[field_name] = f"env: {env_var}"

    # Layer 4: CLI flags (highest priority)
    cli_to_field = {
        "timeout": "statement_timeout",
        "import_timeout": "import_statement_timeout",
        "max_rows": "max_result_rows",
        "schema": "schema_name",
    }
    for cli_name, field_name in cli_to_field.items():
        value = cli_overrides.get(cli_name)
        if value is not None:
            resolved[field_name] = value
            sources[field_name] = f"cli: --{cli_name.replace('_', '-')}"

    if resolved["default_page_size"] > resolved["max_page_size"]:
        resolved["default_page_size"] = resolved["max_page_size"]

    resolved["connect_timeout"] = config.server.connect_timeout
    resolved["application_name"] = config.server.application_name
    resolved["sources"] = sources
    try:
        return Settings(**resolved)
    except ValidationError as e:
        err = e.errors()[0]
        field_name = str(err["loc"][0])
        source = sources.get(field_name, "default")
        msg = f"Invalid {field_name} ({source}): {err['msg']}"
        if source.startswith("cli:"):
            raise InvalidArgumentError(msg) from None
        raise ConfigError(msg) from None
