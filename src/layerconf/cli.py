"""
layerconf command line.

Usage:
    layerconf env [--config-dir DIR] [--env ENV] -- COMMAND [ARGS...]
    layerconf get KEY [--secrets]
    layerconf show [--format json|yaml]
    layerconf envs
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import subprocess
from typing import Any, Sequence

import structlog
import yaml
from rich.console import Console

from layerconf.config import Config, load_config
from layerconf.errors import ExitCode, main_with_error_handling
from layerconf.logging import bind_context, configure_logging

logger = structlog.get_logger()

console = Console()
err_console = Console(stderr=True)


def _print_plain(text: str) -> None:
    console.print(text, soft_wrap=True, markup=False, highlight=False, emoji=False)


def _render(value: Any, output_format: str = "json") -> str:
    if output_format == "yaml":
        return yaml.safe_dump(value, sort_keys=False).rstrip("\n")
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2)
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _load(args: argparse.Namespace) -> Config:
    config = load_config(config_dir=args.config_dir, config_env=args.env, cwd=args.cwd)
    bind_context(environment=config.environment, config_dir=str(config.config_dir))
    return config


def env_command(args: argparse.Namespace) -> int:
    """Run a command with the configured environment variables injected."""
    command = list(args.command_args)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        err_console.print("[red]✗[/red] No command given. Usage: layerconf env -- COMMAND [ARGS...]")
        return ExitCode.CONFIG_ERROR

    config = _load(args)
    injected = config.get_configured_env()
    logger.debug("injecting_environment", variables=sorted(injected))

    result = subprocess.run(command, env={**os.environ, **injected}, check=False)
    return result.returncode


def get_command(args: argparse.Namespace) -> int:
    """Print the resolved value of a key."""
    config = _load(args)
    if args.secrets:
        value = asyncio.run(config.get_with_secrets(args.key))
    else:
        value = config.get(args.key)
    _print_plain(_render(value))
    return ExitCode.SUCCESS


def show_command(args: argparse.Namespace) -> int:
    """Print the whole resolved configuration."""
    config = _load(args)
    _print_plain(_render(config.get_json(), args.format))
    return ExitCode.SUCCESS


def envs_command(args: argparse.Namespace) -> int:
    """List environment directories in the config root and extra dirs."""
    config = _load(args)
    environments = config.environment_locator.list_environments()
    if not environments:
        err_console.print(f"[yellow]No environments found in {config.config_dir}[/yellow]")
        return ExitCode.SUCCESS

    for name in environments:
        marker = "*" if name == config.environment else " "
        _print_plain(f"{marker} {name}")
    return ExitCode.SUCCESS


COMMANDS = {
    "env": env_command,
    "get": get_command,
    "show": show_command,
    "envs": envs_command,
}


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config-dir", help="Config root (default: NODE_CONFIG_DIR or ./config)")
    common.add_argument("--env", help="Environment to load (default: NODE_CONFIG_ENV or 'default')")
    common.add_argument("--cwd", help="Working directory used to find config-settings.json")
    common.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for diagnostics written to stderr",
    )

    parser = argparse.ArgumentParser(prog="layerconf", description="Layered configuration tool")
    subparsers = parser.add_subparsers(dest="command")

    env_parser = subparsers.add_parser(
        "env", parents=[common], help="Run a command with configured environment variables"
    )
    env_parser.add_argument("command_args", nargs=argparse.REMAINDER, help="Command to run")

    get_parser = subparsers.add_parser("get", parents=[common], help="Print a config value")
    get_parser.add_argument("key", help="Dotted key (e.g., database.host)")
    get_parser.add_argument("--secrets", action="store_true", help="Resolve secret references")

    show_parser = subparsers.add_parser("show", parents=[common], help="Print the whole config")
    show_parser.add_argument("--format", choices=["json", "yaml"], default="json", help="Output format")

    subparsers.add_parser("envs", parents=[common], help="List available environments")

    return parser


@main_with_error_handling()
def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return ExitCode.CONFIG_ERROR

    configure_logging(getattr(logging, args.log_level))
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    raise SystemExit(main())
