"""Output formatters for tenantdb-tool."""

from tenantdb_tool.formatters.base import Formatter, FormatterRegistry, Tabular, registry
from tenantdb_tool.formatters.csv import CSVFormatter
from tenantdb_tool.formatters.json import JSONFormatter
from tenantdb_tool.formatters.table import TableFormatter

__all__ = [
    "CSVFormatter",
    "Formatter",
    "FormatterRegistry",
    "JSONFormatter",
    "TableFormatter",
    "Tabular",
    "registry",
]
