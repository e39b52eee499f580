"""structlog setup for tenantdb-tool.

Everything goes to stderr; stdout carries only command output so it can be
piped. Modules fetch loggers with ``structlog.get_logger()`` inside
functions, after setup_logging() has run.
"""

import logging
import sys
from typing import Any

import structlog

# Event keys whose values never reach a log line.
SECRET_KEYS = frozenset({"password", "dsn", "conninfo"})


class _LazyStderrFactory:
    """Resolve sys.stderr when each logger is created.

    PrintLoggerFactory(file=sys.stderr) holds on to the handle it was
    configured with; under CliRunner that handle is closed after the
    first invocation.
    """

    def __call__(self, *args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file=sys.stderr)


def redact_secrets(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask tenant credentials that end up in an event or its bound context."""
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = "***"
    return event_dict


def setup_logging(verbose: bool = False, json_logs: bool = False) -> None:
    """Configure structlog.

    Args:
        verbose: DEBUG level, which includes every SQL statement sent.
            INFO otherwise.
        json_logs: One JSON object per line instead of console output.
    """
    renderer: Any
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            redact_secrets,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.INFO
        ),
        context_class=dict,
        logger_factory=_LazyStderrFactory(),
        cache_logger_on_first_use=False,
    )
