"""Configuration management for agentmonitor.

Hierarchical YAML configuration with:
- System-level config (/etc/agentmonitor/ or %PROGRAMDATA%)
- User-level config (~/.config/agentmonitor/ or %APPDATA%)
- Project-level config (<directory>/.agentmonitor/)
- Environment variable overrides (highest priority)

Configuration is static: it is read once when the plugin starts.

Example usage:
    from agentmonitor.config import load_config

    config = load_config(directory="/path/to/project")
    print(config.monitor.endpoint)
"""

from agentmonitor.config.loader import (
    dict_to_config,
    get_config,
    load_config,
    reset_config,
)
from agentmonitor.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from agentmonitor.config.schema import (
    Config,
    GatingConfig,
    LoggingConfig,
    MonitorConfig,
    NotificationConfig,
    SessionConfig,
    ToolsConfig,
)

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    "dict_to_config",
    "GatingConfig",
    "LoggingConfig",
    "MonitorConfig",
    "NotificationConfig",
    "SessionConfig",
    "ToolsConfig",
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
