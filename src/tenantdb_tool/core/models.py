"""Result models for tenantdb-tool.

Driver-level models (ColumnMeta, StatementResult) are what PgClient returns.
Everything else is the uniform, request-scoped contract handed to callers:
catalog descriptors, row pages, query results, import and reset outcomes.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

# ---------------------------------------------------------------------------
# Driver level
# ---------------------------------------------------------------------------


class ColumnMeta(BaseModel):
    """Metadata for a single result column."""

    name: str


class StatementResult(BaseModel):
    """Raw outcome of one statement as reported by the driver.

    returns_rows is True when the server sent a result set (cursor.description
    present), regardless of how many rows it held.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    columns: list[ColumnMeta]
    rows: list[tuple[Any, ...]]
    status_message: str
    returns_rows: bool = True
    rows_affected: int = 0
    truncated: bool = False


# ---------------------------------------------------------------------------
# Tenant
# ---------------------------------------------------------------------------


class TenantDatabase(BaseModel):
    """Connection parameters of the one database provisioned for a project."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    host: str
    port: int
    database_name: str
    username: str
    password: str | None = None
    sslmode: str = "prefer"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class TableDescriptor(BaseModel):
    name: str
    estimated_row_count: int
    size_on_disk: int


class KeyRole(StrEnum):
    NONE = "none"
    PRIMARY = "primary"
    UNIQUE = "unique"
    INDEX = "index"


class ColumnDescriptor(BaseModel):
    name: str
    declared_type: str
    nullable: bool
    key_role: KeyRole = KeyRole.NONE
    default: str | None = None
    extra: str = ""


ClientValue = str | None


class RowPage(BaseModel):
    """A bounded window of a table's rows.

    Every row's keys are exactly ``columns``, in the same order.
    """

    columns: list[str]
    rows: list[dict[str, ClientValue]]
    total_row_count: int
    page: int
    limit: int

    @model_validator(mode="after")
    def rows_match_columns(self) -> RowPage:
        for i, row in enumerate(self.rows):
            if list(row) != self.columns:
                msg = f"Row {i} keys {list(row)} do not match columns {self.columns}"
                raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Ad-hoc query
# ---------------------------------------------------------------------------


class ReadResult(BaseModel):
    kind: Literal["read"] = "read"
    columns: list[str]
    rows: list[dict[str, ClientValue]]
    truncated: bool = False
    duration_ms: float = Field(ge=0)


class WriteResult(BaseModel):
    kind: Literal["write"] = "write"
    rows_affected: int
    status_message: str = ""
    duration_ms: float = Field(ge=0)


QueryResult = Annotated[ReadResult | WriteResult, Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Import / reset
# ---------------------------------------------------------------------------


class StatementError(BaseModel):
    statement_index: int
    message: str


class ImportOutcome(BaseModel):
    statements_total: int
    statements_succeeded: int
    errors: list[StatementError] = []
    aborted: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return not self.errors and not self.aborted


class TableError(BaseModel):
    table: str
    message: str


class ResetOutcome(BaseModel):
    dropped_table_count: int
    errors: list[TableError] = []


# ---------------------------------------------------------------------------
# Display
# ---------------------------------------------------------------------------


class Grid(BaseModel):
    """Column-ordered rows for the output formatters."""

    columns: list[str]
    rows: list[dict[str, Any]]

    @classmethod
    def from_models(cls, items: Sequence[BaseModel], columns: list[str]) -> Grid:
        return cls(
            columns=columns,
            rows=[{c: item.model_dump(mode="json")[c] for c in columns} for item in items],
        )
