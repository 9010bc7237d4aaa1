"""Canonical monitor events: wire models and builders."""

from agentmonitor.events.builder import EventBuilder, summarize_tool_output
from agentmonitor.events.models import (
    ControlResponse,
    EventMeta,
    HookEvent,
    HookEventName,
    HostEvent,
    HostSessionCreated,
    HostSessionDeleted,
    HostSessionError,
    HostSessionIdle,
    HostSessionUpdated,
    NotificationEvent,
    PostToolUseEvent,
    PreCompactEvent,
    PreToolUseEvent,
    SessionEndEvent,
    SessionStartEvent,
    StopEvent,
    SubagentStopEvent,
    ToolResponseSummary,
    UserPromptSubmitEvent,
    parse_host_event,
)

__all__ = [
    "ControlResponse",
    "EventBuilder",
    "EventMeta",
    "HookEvent",
    "HookEventName",
    "HostEvent",
    "HostSessionCreated",
    "HostSessionDeleted",
    "HostSessionError",
    "HostSessionIdle",
    "HostSessionUpdated",
    "NotificationEvent",
    "PostToolUseEvent",
    "PreCompactEvent",
    "PreToolUseEvent",
    "SessionEndEvent",
    "SessionStartEvent",
    "StopEvent",
    "SubagentStopEvent",
    "ToolResponseSummary",
    "UserPromptSubmitEvent",
    "parse_host_event",
    "summarize_tool_output",
]
