"""Shared fixtures for CLI command tests."""

import logging

import pytest
from click.testing import CliRunner

from signlink.config import set_config


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def quiet_cli_env(monkeypatch, tmp_path):
    """Keep log output off the captured streams and ignore local config files."""
    for name in (
        "SIGNLINK_CONFIG_FILE",
        "SIGNLINK_PROBE_SECURE",
        "SIGNLINK_PROBE_TIMEOUT_MS",
        "SIGNLINK_TIMEOUT_MS",
        "SIGNLINK_MAX_RETRIES",
        "SIGNLINK_BASE_DELAY_MS",
        "SIGNLINK_MAX_DELAY_MS",
        "SIGNLINK_ENABLE_RETRY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SIGNLINK_LOG_LEVEL", "ERROR")
    monkeypatch.chdir(tmp_path)

    package_logger = logging.getLogger("signlink")
    saved_handlers = list(package_logger.handlers)
    saved_level = package_logger.level
    yield
    package_logger.handlers[:] = saved_handlers
    package_logger.setLevel(saved_level)
    set_config(None)
