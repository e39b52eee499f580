"""tenantdb-tool - per-project PostgreSQL database manager."""

from tenantdb_tool.__about__ import __version__

__all__ = ["__version__"]
