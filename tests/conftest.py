"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from agentmonitor.config import reset_config
from agentmonitor.logging import reset_logging


# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep real config files and monitor env vars out of every test."""
    for name in ("AGENT_MONITOR_HOST", "AGENT_MONITOR_PORT", "AGENT_MONITOR_PATH", "AGENT_MONITOR_LOG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    reset_config()
    yield
    reset_config()
    reset_logging()
