"""Tests for the plugin's logging setup.

Tests coverage for:
- src/agentmonitor/logging.py
"""

from __future__ import annotations

import io
import logging
import os
import sys

import pytest

from agentmonitor.config import LoggingConfig
from agentmonitor.logging import (
    TRACE,
    VERBOSE,
    get_logger,
    logger,
    resolve_level,
    resolve_log_path,
    setup_logging,
)


def _installed_handlers() -> list[logging.Handler]:
    return [h for h in logger.handlers if not isinstance(h, logging.NullHandler)]


class TestResolveLevel:
    """Tests for picking the log level."""

    def test_default_is_info(self):
        """Test the level without configuration."""
        assert resolve_level(None) == logging.INFO
        assert resolve_level(LoggingConfig()) == logging.INFO

    def test_verbose_wins_over_level(self):
        """Test that verbosity takes precedence over the level name."""
        assert resolve_level(LoggingConfig(level="ERROR", verbose=3)) == VERBOSE

    def test_verbosity_scale(self):
        """Test each verbosity step, clamped at both ends."""
        assert resolve_level(LoggingConfig(verbose=0)) == logging.ERROR
        assert resolve_level(LoggingConfig(verbose=1)) == logging.WARNING
        assert resolve_level(LoggingConfig(verbose=2)) == logging.INFO
        assert resolve_level(LoggingConfig(verbose=4)) == TRACE
        assert resolve_level(LoggingConfig(verbose=9)) == TRACE
        assert resolve_level(LoggingConfig(verbose=-1)) == logging.ERROR

    def test_level_names(self):
        """Test standard, custom and abbreviated level names."""
        assert resolve_level(LoggingConfig(level="debug")) == logging.DEBUG
        assert resolve_level(LoggingConfig(level="warn")) == logging.WARNING
        assert resolve_level(LoggingConfig(level="trace")) == TRACE
        assert resolve_level(LoggingConfig(level="verbose")) == VERBOSE

    def test_unknown_level_name(self):
        """Test that an unknown name falls back to info."""
        assert resolve_level(LoggingConfig(level="chatty")) == logging.INFO


class TestResolveLogPath:
    """Tests for choosing the log file."""

    def test_config_wins_over_env(self, monkeypatch):
        """Test that the configured file beats AGENT_MONITOR_LOG."""
        monkeypatch.setenv("AGENT_MONITOR_LOG", "/tmp/from-env.log")

        assert resolve_log_path(LoggingConfig(file="/tmp/from-config.log")) == "/tmp/from-config.log"
        assert resolve_log_path(None) == "/tmp/from-env.log"

    def test_home_expanded(self):
        """Test that ~ is expanded."""
        path = resolve_log_path(LoggingConfig(file="~/monitor.log"))

        assert path == os.path.expanduser("~/monitor.log")
        assert not path.startswith("~")

    def test_no_file(self):
        """Test that no file is chosen when nothing is configured."""
        assert resolve_log_path(LoggingConfig()) is None


class TestSetupLogging:
    """Tests for handler installation."""

    def test_does_not_propagate_to_host(self):
        """Test that records stay out of the host's root logger."""
        assert logger.propagate is False
        assert get_logger("store").parent is logger

    def test_file_output(self, tmp_path):
        """Test that a file handler is installed and its directory created."""
        log_file = tmp_path / "logs" / "monitor.log"

        setup_logging(LoggingConfig(file=str(log_file), level="DEBUG"))
        get_logger("store").debug("hello %s", "file")

        text = log_file.read_text(encoding="utf-8")
        assert "debug [agentmonitor.store] hello file" in text
        assert f"pid={os.getpid()}" in text

    def test_second_call_is_noop(self, tmp_path):
        """Test that setup only installs handlers once."""
        config = LoggingConfig(file=str(tmp_path / "monitor.log"))

        setup_logging(config)
        setup_logging(config)

        assert len(_installed_handlers()) == 1

    def test_unopenable_file_without_console(self, tmp_path, monkeypatch):
        """Test that a bad path with no console installs nothing."""
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        monkeypatch.setattr(sys, "stderr", io.StringIO())

        setup_logging(LoggingConfig(file=str(blocker / "monitor.log")))

        assert _installed_handlers() == []

    def test_no_file_without_console(self, monkeypatch):
        """Test that nothing is written to a piped stderr."""
        monkeypatch.setattr(sys, "stderr", io.StringIO())

        setup_logging(LoggingConfig())

        assert _installed_handlers() == []

    @pytest.mark.parametrize("verbose, expected", [(0, logging.ERROR), (4, TRACE)])
    def test_logger_level_follows_config(self, tmp_path, verbose, expected):
        """Test that the package logger level is set from configuration."""
        setup_logging(LoggingConfig(file=str(tmp_path / "monitor.log"), verbose=verbose))

        assert logger.level == expected
