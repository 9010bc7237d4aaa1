"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Conversion from dict to typed Config dataclass
- A process-wide cached config (read once at startup)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from agentmonitor.config.merge import merge_configs
from agentmonitor.config.paths import get_config_paths
from agentmonitor.config.schema import (
    Config,
    GatingConfig,
    LoggingConfig,
    MonitorConfig,
    NotificationConfig,
    SessionConfig,
    ToolsConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("agentmonitor.config")

_cached_config: Config | None = None

_VALID_POLICIES = {"open", "closed"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from AGENT_MONITOR_* environment variables."""
    overrides: dict[str, Any] = {}
    monitor: dict[str, Any] = {}

    host = os.environ.get("AGENT_MONITOR_HOST")
    if host:
        monitor["host"] = host

    port = os.environ.get("AGENT_MONITOR_PORT")
    if port:
        try:
            monitor["port"] = int(port)
        except ValueError:
            _log.warning("Ignoring non-integer AGENT_MONITOR_PORT=%r", port)

    path = os.environ.get("AGENT_MONITOR_PATH")
    if path:
        monitor["path"] = path

    if monitor:
        overrides["monitor"] = monitor

    log_path = os.environ.get("AGENT_MONITOR_LOG")
    if log_path:
        overrides["logging"] = {"file": log_path}

    return overrides


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def _policy(value: Any, fallback: str) -> str:
    text = str(value).lower()
    if text not in _VALID_POLICIES:
        _log.warning("Unknown gating policy %r, using %s", value, fallback)
        return fallback
    return text


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass."""
    monitor_data = _section(data, "monitor")
    monitor_defaults = MonitorConfig()
    monitor = MonitorConfig(
        host=str(monitor_data.get("host", monitor_defaults.host)),
        port=int(monitor_data.get("port", monitor_defaults.port)),
        path=str(monitor_data.get("path", monitor_defaults.path)),
        timeout=float(monitor_data.get("timeout", monitor_defaults.timeout)),
    )

    session_data = _section(data, "session")
    session_defaults = SessionConfig()
    session = SessionConfig(
        idle_timeout=float(session_data.get("idle_timeout", session_defaults.idle_timeout)),
        end_grace_period=float(
            session_data.get("end_grace_period", session_defaults.end_grace_period)
        ),
        stop_check_delay=float(
            session_data.get("stop_check_delay", session_defaults.stop_check_delay)
        ),
        sweep_interval=float(session_data.get("sweep_interval", session_defaults.sweep_interval)),
        idle_warning_window=float(
            session_data.get("idle_warning_window", session_defaults.idle_warning_window)
        ),
        transcript_dir=session_data.get("transcript_dir"),
    )

    notif_data = _section(data, "notifications")
    notifications = NotificationConfig(
        dismiss_delay=float(notif_data.get("dismiss_delay", NotificationConfig.dismiss_delay)),
        max_history=int(notif_data.get("max_history", NotificationConfig.max_history)),
    )

    tools_data = _section(data, "tools")
    sensitive = tools_data.get("sensitive")
    tools = ToolsConfig(
        sensitive=[s for s in sensitive if isinstance(s, str)]
        if isinstance(sensitive, list)
        else None,
    )

    gating_data = _section(data, "gating")
    gating_defaults = GatingConfig()
    default_policy = _policy(
        gating_data.get("default_policy", gating_defaults.default_policy),
        gating_defaults.default_policy,
    )
    policies = dict(gating_defaults.policies)
    policies_data = gating_data.get("policies", {})
    if isinstance(policies_data, dict):
        for kind, value in policies_data.items():
            policies[str(kind)] = _policy(value, default_policy)
    gating = GatingConfig(default_policy=default_policy, policies=policies)

    log_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    known_keys = {"monitor", "session", "notifications", "tools", "gating", "logging"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(
        monitor=monitor,
        session=session,
        notifications=notifications,
        tools=tools,
        gating=gating,
        logging=logging_config,
        extra=extra,
    )


def load_config(directory: str | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config (<directory>/.agentmonitor/config.yaml)
    3. User config
    4. System config

    Args:
        directory: Project directory for project-level config.
        reload: Force reload even if cached.
    """
    global _cached_config

    if _cached_config is not None and not reload and directory is None:
        return _cached_config

    layers: list[dict[str, Any]] = []
    for path in get_config_paths(directory):
        layer = load_yaml_file(path)
        if layer:
            _log.debug("Loaded config from %s", path)
            layers.append(layer)

    env_layer = env_overrides()
    if env_layer:
        layers.append(env_layer)

    config = dict_to_config(merge_configs(*layers))

    if directory is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config (tests)."""
    global _cached_config
    _cached_config = None
