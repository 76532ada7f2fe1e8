"""Root test configuration."""

import json
import logging
from pathlib import Path
from typing import Any

import pytest
import structlog
import yaml


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture(autouse=True)
def clean_config_env(monkeypatch):
    """Keep NODE_CONFIG_* variables from the host out of tests."""
    for name in ("NODE_CONFIG_DIR", "NODE_CONFIG_ENV", "NODE_CONFIG_SKIP_ENV_WARNING"):
        monkeypatch.delenv(name, raising=False)


def write_tree(root: Path, files: dict[str, Any]) -> Path:
    """Write fixture files under ``root``.

    String contents are written verbatim; anything else is serialized by
    extension (YAML for .yml/.yaml, JSON otherwise).
    """
    for relative, contents in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(contents, str):
            path.write_text(contents)
        elif path.suffix in (".yml", ".yaml"):
            path.write_text(yaml.safe_dump(contents))
        else:
            path.write_text(json.dumps(contents))
    return root


@pytest.fixture
def make_tree(tmp_path):
    """Return a helper writing a fixture tree under tmp_path."""

    def _make(files: dict[str, Any], root: str = "config") -> Path:
        return write_tree(tmp_path / root, files)

    return _make
