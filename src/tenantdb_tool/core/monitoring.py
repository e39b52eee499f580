"""Sentry integration for error tracking and performance monitoring.

Sentry is initialized early in main() after logging setup. Without
TENANTDB_SENTRY_DSN the SDK runs with no transport and sends nothing.
"""

import os

import sentry_sdk

from tenantdb_tool.__about__ import __version__

SENTRY_DSN_ENV = "TENANTDB_SENTRY_DSN"


def setup_sentry(environment: str | None = None) -> None:
    """Initialize Sentry from the environment."""
    sentry_sdk.init(
        dsn=os.environ.get(SENTRY_DSN_ENV) or None,
        traces_sample_rate=0.03,
        environment=environment or os.environ.get("TENANTDB_ENVIRONMENT", "local"),
        release=__version__,
        attach_stacktrace=True,
        send_default_pii=False,
    )
