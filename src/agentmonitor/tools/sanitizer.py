"""Redaction and truncation of tool arguments before they leave the process."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from agentmonitor.logging import get_logger
from agentmonitor.tools.registry import ToolRegistry, get_default_registry

log = get_logger("sanitizer")

COMMAND_MAX_CHARS = 100
STRING_MAX_CHARS = 200
TRUNCATED_SUFFIX = "... [truncated]"
OBJECT_MARKER = "[object]"
UNSERIALIZABLE_MARKER = "[unserializable]"

# Keys forwarded verbatim for non-sensitive tools
PASSTHROUGH_KEYS = frozenset({"pattern", "glob", "path"})

_SCALARS = (str, int, float, bool, type(None))


def type_name(value: Any) -> str:
    """Name a value's type using the JSON vocabulary the monitor expects."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if callable(value):
        return "function"
    # JSON null included
    return "object"


def _redact(args: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "_sanitized": True,
        "param_count": len(args),
        "param_types": {str(key): type_name(value) for key, value in args.items()},
    }


def _sanitize_value(key: str, value: Any) -> Any:
    if key == "command" and isinstance(value, str):
        return value[:COMMAND_MAX_CHARS]
    if key in PASSTHROUGH_KEYS:
        return value
    if isinstance(value, str) and len(value) > STRING_MAX_CHARS:
        return f"{value[:STRING_MAX_CHARS]}{TRUNCATED_SUFFIX}"
    if not isinstance(value, _SCALARS):
        return OBJECT_MARKER
    return value


def sanitize_tool_input(
    tool_name: str,
    args: Any,
    registry: ToolRegistry | None = None,
) -> Any:
    """Return a copy of a tool's arguments that is safe to send to the monitor.

    Sensitive tools are reduced to a parameter count and per-parameter type
    names; no value survives. For other tools:

    - ``command`` strings are cut to the first 100 characters
    - ``pattern``, ``glob`` and ``path`` pass through unchanged
    - other strings longer than 200 characters are truncated with a marker
    - structured values (mappings, sequences, objects) become ``"[object]"``
    - remaining scalars pass through

    Never raises. Arguments that cannot be walked degrade to
    ``"[unserializable]"``.
    """
    registry = registry or get_default_registry()

    if args is None:
        args = {}
    if not isinstance(args, Mapping):
        log.warning("Tool %s arguments are not a mapping (%s)", tool_name, type(args).__name__)
        return UNSERIALIZABLE_MARKER

    try:
        if registry.is_sensitive(tool_name):
            return _redact(args)
        return {str(key): _sanitize_value(str(key), value) for key, value in args.items()}
    except Exception as e:
        log.warning("Could not sanitize arguments for %s: %s", tool_name, e)
        return UNSERIALIZABLE_MARKER
