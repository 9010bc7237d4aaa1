"""Tool registry and argument sanitization."""

from agentmonitor.tools.registry import (
    BUILTIN_TOOLS,
    SUBAGENT_TOOL,
    ToolCategory,
    ToolMetadata,
    ToolRegistry,
    get_default_registry,
    get_tool_metadata,
    is_tool_sensitive,
)
from agentmonitor.tools.sanitizer import sanitize_tool_input

__all__ = [
    "BUILTIN_TOOLS",
    "SUBAGENT_TOOL",
    "ToolCategory",
    "ToolMetadata",
    "ToolRegistry",
    "get_default_registry",
    "get_tool_metadata",
    "is_tool_sensitive",
    "sanitize_tool_input",
]
