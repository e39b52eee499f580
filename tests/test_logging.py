"""Tests for logging setup."""

import json

import pytest
import structlog

from tenantdb_tool.core.logging import redact_secrets, setup_logging


@pytest.mark.unit
class TestSetupLogging:
    def test_setup_without_errors(self):
        setup_logging()

    def test_setup_verbose(self):
        setup_logging(verbose=True)

    def test_setup_json(self):
        setup_logging(json_logs=True)


@pytest.mark.unit
class TestRedactSecrets:
    def test_masks_secret_keys(self):
        event = redact_secrets(None, "info", {"event": "x", "password": "s3cret", "dsn": "postgresql://u:p@h/db"})
        assert event == {"event": "x", "password": "***", "dsn": "***"}

    def test_none_stays_none(self):
        assert redact_secrets(None, "info", {"password": None}) == {"password": None}

    def test_other_keys_untouched(self):
        event = {"event": "tenant resolved", "host": "db.internal"}
        assert redact_secrets(None, "info", dict(event)) == event


@pytest.mark.unit
class TestLogOutput:
    def test_log_to_stderr(self, capsys):
        setup_logging(verbose=True)
        structlog.get_logger().info("test message")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "test message" in captured.err

    def test_debug_hidden_when_not_verbose(self, capsys):
        setup_logging(verbose=False)
        structlog.get_logger().debug("hidden detail")

        assert "hidden detail" not in capsys.readouterr().err

    def test_json_lines_include_bound_context(self, capsys):
        setup_logging(json_logs=True)
        structlog.contextvars.bind_contextvars(project="42")
        try:
            structlog.get_logger().info("import finished", total=3)
        finally:
            structlog.contextvars.clear_contextvars()

        record = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert record["event"] == "import finished"
        assert record["project"] == "42"
        assert record["total"] == 3
        assert record["level"] == "info"

    def test_password_never_logged(self, capsys):
        setup_logging(json_logs=True)
        structlog.get_logger().info("connecting", host="h", password="s3cret")

        err = capsys.readouterr().err
        assert "s3cret" not in err
        assert json.loads(err.strip().splitlines()[-1])["password"] == "***"
