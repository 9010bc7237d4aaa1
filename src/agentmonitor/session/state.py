"""Per-session lifecycle record and the phases derived from it."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


def now_ms() -> float:
    """Monotonic clock in milliseconds."""
    return time.monotonic() * 1000.0


class SessionSource(Enum):
    """How a session came into being."""

    STARTUP = "startup"
    RESUME = "resume"
    CLEAR = "clear"


class SessionPhase(Enum):
    """Lifecycle phase derived from SessionState fields.

    Not stored anywhere; see SessionState.phase.
    """

    UNINITIALIZED = "uninitialized"
    RESPONDING = "responding"  # Agent generating, no tools running
    TOOLS_PENDING = "tools_pending"  # At least one tool executing
    IDLE = "idle"  # Nothing running, waiting on the user
    ENDED = "ended"  # End reason recorded, awaiting purge


@dataclass(slots=True)
class SessionState:
    """Mutable state for one session, owned by SessionStore.

    Attributes:
        session_id: Opaque unique key
        start_time: Monotonic ms at creation
        last_activity: Monotonic ms of the last activity-bumping call
        transcript_path: <transcript_dir>/<session_id>.json
        cwd: Working directory of the host project
        source: startup, resume or clear
        is_first_message: True until the first tool call
        tool_call_count: Tools started so far (only increases)
        active_tools: Tool names currently executing
        completed_tools: Tool names that finished at least once
        last_tool_name: Most recent tool started (PostToolUse correlation)
        last_tool_args: Raw arguments of last_tool_name
        is_responding: Agent is generating or acting
        has_subagent: A Task subagent is in flight
        subagent_call_id: Id minted when the subagent started
        message_count: User messages received
        end_reason: Set once the session is ending
        error_details: Error payload for error endings
        stop_hook_active: A Stop event is due and not yet sent
        subagent_stop_hook_active: A SubagentStop event is due and not yet sent
    """

    session_id: str
    transcript_path: str
    cwd: str
    source: SessionSource = SessionSource.STARTUP
    start_time: float = field(default_factory=now_ms)
    last_activity: float = field(default_factory=now_ms)
    is_first_message: bool = True
    tool_call_count: int = 0
    active_tools: set[str] = field(default_factory=set)
    completed_tools: set[str] = field(default_factory=set)
    last_tool_name: str | None = None
    last_tool_args: dict[str, Any] | None = None
    is_responding: bool = False
    has_subagent: bool = False
    subagent_call_id: str | None = None
    message_count: int = 0
    end_reason: str | None = None
    error_details: Any = None
    stop_hook_active: bool = False
    subagent_stop_hook_active: bool = False

    @property
    def is_ended(self) -> bool:
        return self.end_reason is not None

    @property
    def phase(self) -> SessionPhase:
        if self.is_ended:
            return SessionPhase.ENDED
        if self.active_tools:
            return SessionPhase.TOOLS_PENDING
        if self.is_responding:
            return SessionPhase.RESPONDING
        return SessionPhase.IDLE

    def stop_condition_met(self) -> bool:
        """True when the agent has gone quiet after handling a user message."""
        return not self.is_responding and not self.active_tools and self.message_count > 0

    def snapshot(self) -> SessionState:
        """Independent copy for readers that must not see later mutations."""
        return replace(
            self,
            active_tools=set(self.active_tools),
            completed_tools=set(self.completed_tools),
            last_tool_args=dict(self.last_tool_args) if self.last_tool_args is not None else None,
        )
