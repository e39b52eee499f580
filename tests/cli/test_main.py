"""Tests for the CLI entry point."""

import pytest

from tenantdb_tool import __version__
from tenantdb_tool.cli.main import app


@pytest.mark.unit
class TestCliHelp:
    def test_help_flag(self, runner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "tenantdb-tool" in result.stdout
        for command in ("credentials", "tables", "structure", "data", "query"):
            assert command in result.stdout

    def test_no_args_shows_help(self, runner):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)
        assert "Usage" in result.output


@pytest.mark.unit
class TestCliVersion:
    def test_version_flag(self, runner):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"tenantdb-tool {__version__}" in result.stdout

    def test_version_short_flag(self, runner):
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert f"tenantdb-tool {__version__}" in result.stdout


@pytest.mark.unit
def test_verbose_flag_accepted(runner):
    result = runner.invoke(app, ["--verbose", "--help"])
    assert result.exit_code == 0


@pytest.mark.unit
def test_unknown_command_fails(runner):
    result = runner.invoke(app, ["nonexistent-command"])
    assert result.exit_code != 0


@pytest.mark.unit
@pytest.mark.parametrize("command", ["query", "export", "import", "reset", "data"])
def test_command_help(runner, command):
    result = runner.invoke(app, [command, "--help"])
    assert result.exit_code == 0
    assert "Usage" in result.stdout
