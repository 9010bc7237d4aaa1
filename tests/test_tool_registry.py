"""Tests for the tool registry."""

from __future__ import annotations

from agentmonitor.tools import (
    BUILTIN_TOOLS,
    SUBAGENT_TOOL,
    ToolCategory,
    ToolRegistry,
    get_tool_metadata,
    is_tool_sensitive,
)

SENSITIVE_BUILTINS = {"Read", "Write", "Edit", "MultiEdit", "Bash", "NotebookRead", "NotebookEdit"}


class TestBuiltinTools:
    """Tests for the built-in tool table."""

    def test_every_builtin_has_category(self):
        """Test that every built-in tool carries a category and description."""
        for meta in BUILTIN_TOOLS:
            assert isinstance(meta.category, ToolCategory)
            assert meta.description

    def test_builtin_sensitive_set(self):
        """Test which built-ins are flagged sensitive."""
        sensitive = {meta.name for meta in BUILTIN_TOOLS if meta.sensitive}
        assert sensitive == SENSITIVE_BUILTINS

    def test_subagent_tool(self):
        """Test that the subagent tool is Task and categorized as such."""
        assert SUBAGENT_TOOL == "Task"
        meta = get_tool_metadata("Task")
        assert meta is not None
        assert meta.category is ToolCategory.SUBAGENT
        assert not meta.sensitive


class TestToolRegistry:
    """Tests for ToolRegistry lookups."""

    def test_get_known_tool(self):
        """Test metadata lookup for a known tool."""
        registry = ToolRegistry()
        meta = registry.get("Grep")

        assert meta is not None
        assert meta.category is ToolCategory.SEARCH

    def test_unknown_tool_has_no_metadata(self):
        """Test that unknown tools are absent and not sensitive."""
        registry = ToolRegistry()

        assert registry.get("mcp__custom") is None
        assert not registry.is_known("mcp__custom")
        assert not registry.is_sensitive("mcp__custom")

    def test_by_category(self):
        """Test filtering tools by category."""
        registry = ToolRegistry()
        names = {meta.name for meta in registry.by_category(ToolCategory.WEB)}

        assert names == {"WebFetch", "WebSearch"}

    def test_list_names_sorted(self):
        """Test that list_names returns every tool in sorted order."""
        names = ToolRegistry().list_names()

        assert names == sorted(names)
        assert len(names) == len(BUILTIN_TOOLS)

    def test_module_level_helpers(self):
        """Test the default-registry helpers."""
        assert is_tool_sensitive("Bash")
        assert not is_tool_sensitive("Glob")


class TestSensitiveOverride:
    """Tests for replacing the sensitive-tool list."""

    def test_override_replaces_builtin_flags(self):
        """Test that only the listed tools are sensitive."""
        registry = ToolRegistry(sensitive_override=["Grep"])

        assert registry.is_sensitive("Grep")
        assert not registry.is_sensitive("Bash")
        assert not registry.is_sensitive("Read")

    def test_override_covers_unknown_tools(self):
        """Test that unknown tools named in the override are sensitive."""
        registry = ToolRegistry(sensitive_override=["mcp__vault"])

        assert registry.is_sensitive("mcp__vault")
        assert registry.get("mcp__vault") is None

    def test_override_does_not_touch_default_registry(self):
        """Test that an overridden registry leaves the shared one intact."""
        ToolRegistry(sensitive_override=[])

        assert is_tool_sensitive("Bash")
