"""agentmonitor: forwards coding-agent lifecycle events to an external monitor."""

__version__ = "0.1.0"

# Public API
from agentmonitor.config import Config, get_config, load_config
from agentmonitor.dispatch import EventDispatcher, FailurePolicy, MonitorClient
from agentmonitor.errors import (
    AgentMonitorError,
    BlockedByMonitorError,
    MonitorUnavailableError,
    SessionNotFoundError,
    TransportError,
)
from agentmonitor.events import ControlResponse, EventBuilder, HookEvent, HookEventName
from agentmonitor.interaction import InteractionTracker, NotificationType, Severity
from agentmonitor.plugin import MonitorPlugin
from agentmonitor.session import SessionPhase, SessionSource, SessionState, SessionStore
from agentmonitor.tools import ToolRegistry, sanitize_tool_input

__all__ = [
    # Main entry point
    "MonitorPlugin",
    # Config
    "Config",
    "load_config",
    "get_config",
    # Sessions
    "SessionPhase",
    "SessionSource",
    "SessionState",
    "SessionStore",
    # Events
    "ControlResponse",
    "EventBuilder",
    "HookEvent",
    "HookEventName",
    # Dispatch
    "EventDispatcher",
    "FailurePolicy",
    "MonitorClient",
    # Interaction
    "InteractionTracker",
    "NotificationType",
    "Severity",
    # Tools
    "ToolRegistry",
    "sanitize_tool_input",
    # Errors
    "AgentMonitorError",
    "BlockedByMonitorError",
    "MonitorUnavailableError",
    "SessionNotFoundError",
    "TransportError",
]
