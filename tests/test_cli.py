"""Tests for cli.py.

Tests for the env, get, show and envs commands.
"""

import json
import sys
from unittest.mock import MagicMock, patch

import pytest
import yaml

from layerconf.cli import build_parser, main
from layerconf.errors import ExitCode


@pytest.fixture(autouse=True)
def keep_test_logging(monkeypatch):
    """Leave the test structlog configuration in place."""
    monkeypatch.setattr("layerconf.cli.configure_logging", lambda level: None)


@pytest.fixture
def config_root(make_tree):
    return make_tree(
        {
            "default/thing.json": {"test": 1, "name": "default"},
            "default/db.yaml": {"host": "db.internal", "port": 5432},
            "default/index.json": {"password": "secret|db-password"},
            "dev/thing.json": {"test": 3},
            "environment.json": {"DB_HOST": "db.host", "DB_PORT": "db.port"},
        }
    )


def run(config_root, *args):
    return main([*args, "--config-dir", str(config_root), "--cwd", str(config_root.parent)])


class TestBuildParser:
    """Tests for build_parser."""

    def test_env_collects_command(self):
        """Everything after -- is the command to run."""
        args = build_parser().parse_args(["env", "--env", "dev", "--", "echo", "-n", "hi"])
        assert args.command == "env"
        assert args.env == "dev"
        assert [a for a in args.command_args if a != "--"] == ["echo", "-n", "hi"]

    def test_show_format_choices(self):
        """show accepts json or yaml."""
        assert build_parser().parse_args(["show", "--format", "yaml"]).format == "yaml"
        with pytest.raises(SystemExit):
            build_parser().parse_args(["show", "--format", "toml"])


class TestMain:
    """Tests for main dispatch."""

    def test_no_command(self, capsys):
        """Without a command, help is printed."""
        assert main([]) == ExitCode.CONFIG_ERROR
        assert "layerconf" in capsys.readouterr().out


class TestGetCommand:
    """Tests for layerconf get."""

    def test_prints_scalar(self, config_root, capsys):
        """Prints a scalar value."""
        assert run(config_root, "get", "thing.test") == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip() == "1"

    def test_prints_string_verbatim(self, config_root, capsys):
        """Strings are printed without quotes."""
        run(config_root, "get", "db.host")
        assert capsys.readouterr().out.strip() == "db.internal"

    def test_prints_mapping_as_json(self, config_root, capsys):
        """Containers are printed as JSON."""
        run(config_root, "get", "thing", "--env", "dev")
        assert json.loads(capsys.readouterr().out) == {"test": 3, "name": "default"}

    def test_missing_key(self, config_root):
        """A missing key exits with the config error code."""
        assert run(config_root, "get", "thing.nope") == ExitCode.CONFIG_ERROR

    def test_secrets_pass_through_without_provider(self, config_root, capsys):
        """--secrets leaves references alone when no provider is configured."""
        assert run(config_root, "get", "password", "--secrets") == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip() == "secret|db-password"


class TestShowCommand:
    """Tests for layerconf show."""

    def test_json(self, config_root, capsys):
        """Prints the snapshot as JSON."""
        assert run(config_root, "show") == ExitCode.SUCCESS
        snapshot = json.loads(capsys.readouterr().out)
        assert snapshot["thing"] == {"test": 1, "name": "default"}
        assert snapshot["db"]["port"] == 5432

    def test_yaml(self, config_root, capsys):
        """Prints the snapshot as YAML."""
        run(config_root, "show", "--format", "yaml", "--env", "dev")
        snapshot = yaml.safe_load(capsys.readouterr().out)
        assert snapshot["thing"]["test"] == 3


class TestEnvsCommand:
    """Tests for layerconf envs."""

    def test_lists_environments(self, config_root, capsys):
        """Lists environment directories and marks the active one."""
        assert run(config_root, "envs", "--env", "dev") == ExitCode.SUCCESS
        out = capsys.readouterr().out
        assert "default" in out
        assert "* dev" in out


class TestEnvCommand:
    """Tests for layerconf env."""

    def test_injects_configured_environment(self, config_root):
        """The command runs with the mapped variables added."""
        with patch("layerconf.cli.subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0)
            result = main(
                [
                    "env",
                    "--config-dir",
                    str(config_root),
                    "--cwd",
                    str(config_root.parent),
                    "--",
                    "printenv",
                    "DB_HOST",
                ]
            )

        assert result == 0
        command = mock_run.call_args.args[0]
        env = mock_run.call_args.kwargs["env"]
        assert command == ["printenv", "DB_HOST"]
        assert env["DB_HOST"] == "db.internal"
        assert env["DB_PORT"] == "5432"
        assert "PATH" in env

    def test_returns_command_exit_code(self, config_root):
        """The child sees the injected variables and its exit code is returned."""
        script = "import os, sys; sys.exit(7 if os.environ.get('DB_PORT') == '5432' else 1)"
        result = main(
            [
                "env",
                "--config-dir",
                str(config_root),
                "--cwd",
                str(config_root.parent),
                "--",
                sys.executable,
                "-c",
                script,
            ]
        )
        assert result == 7

    def test_requires_command(self, config_root):
        """A missing command is an error."""
        assert run(config_root, "env") == ExitCode.CONFIG_ERROR
