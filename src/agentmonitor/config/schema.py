"""Configuration schema dataclasses for agentmonitor.

Every section has working defaults so an empty or missing config file yields a
usable plugin pointed at the local monitor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class MonitorConfig:
    """Where events are sent.

    Example config.yaml:
        monitor:
          host: localhost
          port: 37123
          path: /agent-monitor
          timeout: 10.0
    """

    host: str = "localhost"
    port: int = 37123
    path: str = "/agent-monitor"
    timeout: float = 10.0  # Seconds per request; None-like values are not accepted

    @property
    def endpoint(self) -> str:
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        return f"http://{self.host}:{self.port}{path}"


@dataclass
class SessionConfig:
    """Session lifecycle timing (all values in seconds)."""

    idle_timeout: float = 60.0  # Inactivity before a session ends as "idle"
    end_grace_period: float = 5.0  # Record kept after end for trailing events
    stop_check_delay: float = 0.5  # Delay after PostToolUse before the Stop check
    sweep_interval: float = 5.0  # Period of the idle-warning sweep
    idle_warning_window: float = 5.0  # Warn when this close to idle_timeout
    transcript_dir: str | None = None  # Default: <directory>/.opencode/transcripts


@dataclass
class NotificationConfig:
    """Notification tracker settings."""

    dismiss_delay: float = 5.0  # Info notifications self-dismiss after this
    max_history: int = 100  # Prompts retained per session


@dataclass
class ToolsConfig:
    """Tool registry overrides.

    sensitive replaces the built-in sensitive-tool list when set.
    """

    sensitive: list[str] | None = None


@dataclass
class GatingConfig:
    """Transport failure policy per event kind.

    Values are "open" (log and continue) or "closed" (refuse the action).
    Event kinds not listed use default_policy.

    Example config.yaml:
        gating:
          default_policy: open
          policies:
            PreToolUse: closed
    """

    default_policy: str = "open"
    policies: dict[str, str] = field(default_factory=lambda: {"PreToolUse": "closed"})


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, takes precedence over level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    gating: GatingConfig = field(default_factory=GatingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    extra: dict[str, Any] = field(default_factory=dict)  # Unknown top-level keys
