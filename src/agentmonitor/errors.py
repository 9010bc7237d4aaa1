"""Exception types raised by agentmonitor.

Only BlockedByMonitorError is meant to reach the host: it aborts the tool call
or prompt the monitor rejected. MonitorUnavailableError reaches the host only
for event kinds configured with a fail-closed policy.
"""

from __future__ import annotations


class AgentMonitorError(Exception):
    """Base class for agentmonitor errors."""


class SessionNotFoundError(AgentMonitorError, KeyError):
    """Raised when a session id is unknown to the store."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")

    def __str__(self) -> str:
        return f"Session {self.session_id} not found"


class TransportError(AgentMonitorError):
    """Monitor could not be reached or replied with something unusable."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class MonitorUnavailableError(AgentMonitorError):
    """A fail-closed event could not be delivered, so the action is refused."""

    def __init__(self, event_name: str, cause: Exception) -> None:
        self.event_name = event_name
        self.cause = cause
        super().__init__(f"Agent monitor check failed: {cause}")


class BlockedByMonitorError(AgentMonitorError):
    """The monitor replied with block=true."""

    DEFAULT_REASON = "Tool call blocked by agent monitor"

    def __init__(self, reason: str | None = None, *, event_name: str | None = None) -> None:
        self.reason = reason or self.DEFAULT_REASON
        self.event_name = event_name
        super().__init__(self.reason)
