"""Platform-aware configuration path resolution.

- Windows: %PROGRAMDATA% (system), %APPDATA% (user)
- Unix: /etc/agentmonitor/ (system), $XDG_CONFIG_HOME or ~/.config (user)
- Project: <directory>/.agentmonitor/
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
APP_NAME = "agentmonitor"
PROJECT_DIRNAME = ".agentmonitor"


def get_system_config_path() -> Path | None:
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if program_data:
            return Path(program_data) / APP_NAME / CONFIG_FILENAME
        return None
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    """User-level config file; may not exist."""
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME
    return Path.home() / ".config" / APP_NAME / CONFIG_FILENAME


def get_project_config_path(directory: str) -> Path:
    return Path(directory) / PROJECT_DIRNAME / CONFIG_FILENAME


def get_config_paths(directory: str | None = None) -> list[Path]:
    """All config paths, lowest priority first: system, user, project."""
    paths = [p for p in (get_system_config_path(), get_user_config_path()) if p is not None]
    if directory:
        paths.append(get_project_config_path(directory))
    return paths
