"""Session state store: the per-session lifecycle state machine.

The store owns one SessionState per live session id and decides when the
derived Stop and SubagentStop obligations are due. It also owns the session
timers:

- an idle timer per session, reset on every activity, that ends the session
  with reason "idle" when it fires
- a grace timer armed by end_session() that purges the record later, so
  events still in flight can read it

All methods are synchronous. Under asyncio each call completes within one
loop turn, so interleaved hooks for the same session never observe a
half-applied update.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable
from pathlib import PurePosixPath
from typing import Any

from agentmonitor.errors import SessionNotFoundError
from agentmonitor.logging import get_logger
from agentmonitor.session.state import SessionPhase, SessionSource, SessionState, now_ms
from agentmonitor.tools.registry import SUBAGENT_TOOL

log = get_logger("store")

DEFAULT_IDLE_TIMEOUT = 60.0
DEFAULT_END_GRACE_PERIOD = 5.0


class SessionStore:
    """Owns SessionState records and their timers.

    Each instance is independent: nothing is module-global, so tests can run
    several stores side by side.
    """

    def __init__(
        self,
        cwd: str,
        transcript_dir: str,
        *,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        end_grace_period: float = DEFAULT_END_GRACE_PERIOD,
        on_idle: Callable[[SessionState], None] | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            cwd: Working directory reported in every event
            transcript_dir: Base directory for per-session transcript paths
            idle_timeout: Seconds of inactivity before a session ends as idle
            end_grace_period: Seconds an ended session stays readable
            on_idle: Called with the session after the idle timer ended it
        """
        self._cwd = cwd
        self._transcript_dir = transcript_dir
        self._idle_timeout = idle_timeout
        self._end_grace_period = end_grace_period
        self._on_idle = on_idle

        self._sessions: dict[str, SessionState] = {}
        self._idle_timers: dict[str, asyncio.TimerHandle] = {}
        self._removal_timers: dict[str, asyncio.TimerHandle] = {}

    @property
    def idle_timeout(self) -> float:
        return self._idle_timeout

    def transcript_path_for(self, session_id: str) -> str:
        return str(PurePosixPath(self._transcript_dir) / f"{session_id}.json")

    # --- Lifecycle ---

    def init_session(
        self, session_id: str, source: SessionSource | str | None = None
    ) -> SessionState:
        """Create a session record, or resume an existing one.

        Resuming an existing session keeps its counters and tool history; only
        source and last_activity change, and a pending purge is called off.
        Any other source replaces the record with a fresh one.
        """
        if source is not None:
            source = SessionSource(source)
        existing = self._sessions.get(session_id)

        if existing is not None and source is SessionSource.RESUME:
            existing.source = SessionSource.RESUME
            existing.last_activity = now_ms()
            existing.end_reason = None
            existing.error_details = None
            self._cancel_removal(session_id)
            self._reset_idle_timer(session_id)
            log.debug("Resumed session %s", session_id)
            return existing

        if source is None:
            source = SessionSource.RESUME if existing is not None else SessionSource.STARTUP

        self._cancel_removal(session_id)
        session = SessionState(
            session_id=session_id,
            transcript_path=self.transcript_path_for(session_id),
            cwd=self._cwd,
            source=source,
        )
        self._sessions[session_id] = session
        self._reset_idle_timer(session_id)
        log.info("Initialized session %s (source=%s)", session_id, source.value)
        return session

    def get_session(self, session_id: str) -> SessionState | None:
        return self._sessions.get(session_id)

    def require_session(self, session_id: str) -> SessionState:
        """Get a session or raise SessionNotFoundError."""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def has_session(self, session_id: str) -> bool:
        return session_id in self._sessions

    def get_active_sessions(self) -> list[SessionState]:
        """Snapshots of every record still in the store (ended ones included)."""
        return [s.snapshot() for s in self._sessions.values()]

    def lifecycle_state(self, session_id: str) -> SessionPhase:
        session = self._sessions.get(session_id)
        if session is None:
            return SessionPhase.UNINITIALIZED
        return session.phase

    def is_ended(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        return session is not None and session.is_ended

    def end_session(self, session_id: str, reason: str, error_details: Any = None) -> None:
        """Record why a session ended and schedule its removal.

        The record remains readable for end_grace_period seconds.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return

        session.end_reason = reason
        session.error_details = error_details
        self._cancel_idle_timer(session_id)

        self._cancel_removal(session_id)
        handle = self._call_later(self._end_grace_period, self._remove_session, session_id, session)
        if handle is not None:
            self._removal_timers[session_id] = handle
        log.info("Session %s ended (%s)", session_id, reason)

    def remove_session(self, session_id: str) -> SessionState | None:
        """Drop a record immediately, cancelling its timers."""
        self._cancel_idle_timer(session_id)
        self._cancel_removal(session_id)
        return self._sessions.pop(session_id, None)

    def dispose(self) -> None:
        """Cancel every timer and forget all sessions."""
        for handle in self._idle_timers.values():
            handle.cancel()
        for handle in self._removal_timers.values():
            handle.cancel()
        self._idle_timers.clear()
        self._removal_timers.clear()
        self._sessions.clear()

    # --- Activity ---

    def update_activity(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.last_activity = now_ms()
            self._reset_idle_timer(session_id)

    def start_tool(self, session_id: str, tool_name: str, args: dict[str, Any] | None) -> None:
        """Record a tool starting. No-op for unknown sessions."""
        session = self._sessions.get(session_id)
        if session is None:
            return

        session.last_activity = now_ms()
        session.tool_call_count += 1
        session.active_tools.add(tool_name)
        session.last_tool_name = tool_name
        session.last_tool_args = dict(args) if args else {}
        session.is_first_message = False
        # Busy again: any Stop obligation no longer describes the session
        session.stop_hook_active = False

        if tool_name == SUBAGENT_TOOL:
            session.has_subagent = True
            session.subagent_call_id = f"{session_id}-task-{uuid.uuid4().hex[:12]}"

        self._reset_idle_timer(session_id)

    def complete_tool(self, session_id: str, tool_name: str) -> None:
        """Record a tool finishing and latch derived Stop obligations."""
        session = self._sessions.get(session_id)
        if session is None:
            return

        session.active_tools.discard(tool_name)
        session.completed_tools.add(tool_name)

        if tool_name == SUBAGENT_TOOL and session.has_subagent:
            session.subagent_stop_hook_active = True
            session.has_subagent = False

        if not session.active_tools and not session.is_responding:
            self._check_stop(session)

    def abort_tool(self, session_id: str, tool_name: str) -> None:
        """Forget a tool call that was refused before it ran.

        The call never completed, so neither completed_tools nor the
        Stop/SubagentStop latches change.
        """
        session = self._sessions.get(session_id)
        if session is None:
            return

        session.active_tools.discard(tool_name)
        if tool_name == SUBAGENT_TOOL:
            session.has_subagent = False
            session.subagent_call_id = None

    def set_responding(self, session_id: str, responding: bool) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            return

        session.is_responding = responding
        if responding:
            session.stop_hook_active = False
        else:
            self._check_stop(session)

    def handle_user_message(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is None:
            return

        session.message_count += 1
        session.is_responding = True
        session.stop_hook_active = False
        session.last_activity = now_ms()
        self._reset_idle_timer(session_id)

    def _check_stop(self, session: SessionState) -> None:
        if session.stop_condition_met() and not session.stop_hook_active:
            session.stop_hook_active = True
            log.debug("Stop due for session %s", session.session_id)

    # --- Obligation consumption ---

    def consume_stop(self, session_id: str) -> bool:
        """Return whether a Stop event is due, clearing the obligation."""
        session = self.require_session(session_id)
        due = session.stop_hook_active
        session.stop_hook_active = False
        return due

    def consume_subagent_stop(self, session_id: str) -> bool:
        """Return whether a SubagentStop event is due, clearing the obligation."""
        session = self.require_session(session_id)
        due = session.subagent_stop_hook_active
        session.subagent_stop_hook_active = False
        return due

    # --- Timers ---

    def _call_later(
        self, delay: float, callback: Callable[..., None], *args: Any
    ) -> asyncio.TimerHandle | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No running event loop; timer for %s not armed", callback.__name__)
            return None
        return loop.call_later(delay, callback, *args)

    def _reset_idle_timer(self, session_id: str) -> None:
        self._cancel_idle_timer(session_id)
        handle = self._call_later(self._idle_timeout, self._handle_idle_timeout, session_id)
        if handle is not None:
            self._idle_timers[session_id] = handle

    def _cancel_idle_timer(self, session_id: str) -> None:
        handle = self._idle_timers.pop(session_id, None)
        if handle is not None:
            handle.cancel()

    def _cancel_removal(self, session_id: str) -> None:
        handle = self._removal_timers.pop(session_id, None)
        if handle is not None:
            handle.cancel()

    def _handle_idle_timeout(self, session_id: str) -> None:
        self._idle_timers.pop(session_id, None)
        session = self._sessions.get(session_id)
        if session is None or session.is_ended:
            return

        log.info("Session %s idle for %.0fs", session_id, self._idle_timeout)
        self.end_session(session_id, "idle")
        if self._on_idle is not None:
            try:
                self._on_idle(session)
            except Exception as e:
                log.error("Idle callback failed for %s: %s", session_id, e)

    def _remove_session(self, session_id: str, session: SessionState) -> None:
        self._removal_timers.pop(session_id, None)
        # A fresh init during the grace window replaced the record; keep it
        if self._sessions.get(session_id) is session:
            del self._sessions[session_id]
            log.debug("Purged session %s", session_id)
