"""Registry of known agent tools.

Maps tool identifiers to a category and a sensitivity flag. Sensitive tools
(file contents, notebooks, shell) never have argument values forwarded to the
monitor; see agentmonitor.tools.sanitizer.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum

# Tool whose start/finish brackets a delegated subagent run
SUBAGENT_TOOL = "Task"


class ToolCategory(Enum):
    SUBAGENT = "Subagent"
    FILE_OPS = "File Operations"
    SEARCH = "Search Operations"
    WEB = "Web Operations"
    NOTEBOOK = "Notebook Operations"
    SHELL = "Shell Operations"
    TODO = "Task Management"
    PLANNING = "Planning"


@dataclass(frozen=True, slots=True)
class ToolMetadata:
    name: str
    category: ToolCategory
    description: str
    sensitive: bool = False


BUILTIN_TOOLS: tuple[ToolMetadata, ...] = (
    ToolMetadata("Task", ToolCategory.SUBAGENT, "Launch a new agent to handle complex tasks"),
    ToolMetadata("Read", ToolCategory.FILE_OPS, "Read file contents", sensitive=True),
    ToolMetadata("Write", ToolCategory.FILE_OPS, "Write content to a file", sensitive=True),
    ToolMetadata("Edit", ToolCategory.FILE_OPS, "Edit file content", sensitive=True),
    ToolMetadata("MultiEdit", ToolCategory.FILE_OPS, "Make multiple edits to a file", sensitive=True),
    ToolMetadata("Glob", ToolCategory.SEARCH, "Find files by pattern"),
    ToolMetadata("Grep", ToolCategory.SEARCH, "Search file contents"),
    ToolMetadata("LS", ToolCategory.SEARCH, "List directory contents"),
    ToolMetadata("Bash", ToolCategory.SHELL, "Execute bash commands", sensitive=True),
    ToolMetadata("BashOutput", ToolCategory.SHELL, "Read output from background shell"),
    ToolMetadata("KillShell", ToolCategory.SHELL, "Kill a background shell"),
    ToolMetadata("WebFetch", ToolCategory.WEB, "Fetch and process web content"),
    ToolMetadata("WebSearch", ToolCategory.WEB, "Search the web"),
    ToolMetadata("NotebookRead", ToolCategory.NOTEBOOK, "Read Jupyter notebook", sensitive=True),
    ToolMetadata("NotebookEdit", ToolCategory.NOTEBOOK, "Edit Jupyter notebook", sensitive=True),
    ToolMetadata("TodoWrite", ToolCategory.TODO, "Manage task list"),
    ToolMetadata("ExitPlanMode", ToolCategory.PLANNING, "Exit planning mode"),
)


class ToolRegistry:
    """Lookup of known tools by name.

    Unknown tools have no metadata and are treated as non-sensitive.
    """

    def __init__(self, sensitive_override: Iterable[str] | None = None) -> None:
        """Initialize the registry with the built-in tools.

        Args:
            sensitive_override: When given, exactly these tool names are
                sensitive and the built-in flags are ignored.
        """
        self._tools: dict[str, ToolMetadata] = {t.name: t for t in BUILTIN_TOOLS}
        self._extra_sensitive: set[str] = set()
        if sensitive_override is not None:
            self._apply_sensitive_override(set(sensitive_override))

    def _apply_sensitive_override(self, names: set[str]) -> None:
        for name, meta in self._tools.items():
            self._tools[name] = replace(meta, sensitive=name in names)
        # Names outside the built-in table are still honoured by is_sensitive()
        self._extra_sensitive = names - self._tools.keys()

    def get(self, tool_name: str) -> ToolMetadata | None:
        return self._tools.get(tool_name)

    def is_known(self, tool_name: str) -> bool:
        return tool_name in self._tools

    def is_sensitive(self, tool_name: str) -> bool:
        meta = self._tools.get(tool_name)
        if meta is not None:
            return meta.sensitive
        return tool_name in self._extra_sensitive

    def by_category(self, category: ToolCategory) -> list[ToolMetadata]:
        return [t for t in self._tools.values() if t.category == category]

    def list_names(self) -> list[str]:
        return sorted(self._tools)


_default_registry = ToolRegistry()


def get_default_registry() -> ToolRegistry:
    return _default_registry


def get_tool_metadata(tool_name: str) -> ToolMetadata | None:
    return _default_registry.get(tool_name)


def is_tool_sensitive(tool_name: str) -> bool:
    return _default_registry.is_sensitive(tool_name)
