"""Construction of canonical events from session state.

The module-level functions are pure: they read a SessionState (normally a
snapshot) and return a frozen event model. EventBuilder binds them to a
SessionStore, raising SessionNotFoundError for unknown sessions and
sanitizing tool arguments on the way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

from agentmonitor.events.models import (
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
)
from agentmonitor.tools.registry import ToolRegistry, get_default_registry
from agentmonitor.tools.sanitizer import sanitize_tool_input

if TYPE_CHECKING:
    from agentmonitor.session.state import SessionState
    from agentmonitor.session.store import SessionStore


def _common(state: SessionState) -> dict[str, str]:
    return {
        "session_id": state.session_id,
        "transcript_path": state.transcript_path,
        "cwd": state.cwd,
    }


def build_session_start(state: SessionState) -> SessionStartEvent:
    return SessionStartEvent(**_common(state), source=state.source.value)


def build_session_end(state: SessionState) -> SessionEndEvent:
    return SessionEndEvent(**_common(state), reason=state.end_reason or "unknown")


def build_stop(state: SessionState) -> StopEvent:
    return StopEvent(**_common(state), stop_hook_active=state.stop_hook_active)


def build_subagent_stop(state: SessionState) -> SubagentStopEvent:
    return SubagentStopEvent(**_common(state), stop_hook_active=state.subagent_stop_hook_active)


def build_pre_tool_use(state: SessionState, tool_name: str, tool_input: Any) -> PreToolUseEvent:
    """tool_input must already be sanitized."""
    return PreToolUseEvent(**_common(state), tool_name=tool_name, tool_input=tool_input)


def build_post_tool_use(
    state: SessionState,
    tool_name: str,
    tool_input: Any,
    tool_response: ToolResponseSummary,
) -> PostToolUseEvent:
    return PostToolUseEvent(
        **_common(state),
        tool_name=tool_name,
        tool_input=tool_input,
        tool_response=tool_response,
    )


def build_user_prompt_submit(state: SessionState, prompt: str) -> UserPromptSubmitEvent:
    return UserPromptSubmitEvent(**_common(state), prompt=prompt)


def build_notification(state: SessionState, message: str) -> NotificationEvent:
    return NotificationEvent(**_common(state), message=message)


def build_pre_compact(
    state: SessionState,
    trigger: Literal["manual", "auto"] = "auto",
    custom_instructions: str | None = None,
) -> PreCompactEvent:
    return PreCompactEvent(
        **_common(state), trigger=trigger, custom_instructions=custom_instructions
    )


def summarize_tool_output(output: Any, *, context_injected: bool = False) -> ToolResponseSummary:
    """Describe a host tool result without copying its content.

    output is the host's post-execution object or mapping carrying
    title, output and metadata.
    """
    if isinstance(output, dict):
        title = output.get("title")
        text = output.get("output")
        metadata = output.get("metadata")
    else:
        title = getattr(output, "title", None)
        text = getattr(output, "output", None)
        metadata = getattr(output, "metadata", None)

    return ToolResponseSummary(
        title=str(title) if title is not None else None,
        output_length=len(text) if isinstance(text, (str, bytes, list, tuple)) else 0,
        has_metadata=bool(metadata),
        success=True,
        context_injected=context_injected,
    )


class EventBuilder:
    """Builds events for sessions held in a SessionStore.

    Methods read a snapshot of the session. Only take_stop() and
    take_subagent_stop() write back, and only to clear the obligation they
    just turned into an event.

    Raises:
        SessionNotFoundError: From every method when the session is unknown.
    """

    def __init__(self, store: SessionStore, registry: ToolRegistry | None = None) -> None:
        self._store = store
        self._registry = registry or get_default_registry()

    def _snapshot(self, session_id: str) -> SessionState:
        return self._store.require_session(session_id).snapshot()

    def session_start(self, session_id: str) -> SessionStartEvent:
        return build_session_start(self._snapshot(session_id))

    def session_end(self, session_id: str) -> SessionEndEvent:
        return build_session_end(self._snapshot(session_id))

    def stop(self, session_id: str) -> StopEvent:
        return build_stop(self._snapshot(session_id))

    def subagent_stop(self, session_id: str) -> SubagentStopEvent:
        return build_subagent_stop(self._snapshot(session_id))

    def take_stop(self, session_id: str) -> StopEvent | None:
        """Build the due Stop event and clear the obligation in the store.

        Returns None when no Stop is due.
        """
        event = self.stop(session_id)
        if not self._store.consume_stop(session_id):
            return None
        return event

    def take_subagent_stop(self, session_id: str) -> SubagentStopEvent | None:
        """Build the due SubagentStop event and clear the obligation."""
        event = self.subagent_stop(session_id)
        if not self._store.consume_subagent_stop(session_id):
            return None
        return event

    def pre_tool_use(self, session_id: str, tool_name: str, args: Any) -> PreToolUseEvent:
        state = self._snapshot(session_id)
        return build_pre_tool_use(
            state, tool_name, sanitize_tool_input(tool_name, args, self._registry)
        )

    def post_tool_use(
        self,
        session_id: str,
        tool_name: str,
        output: Any,
        *,
        context_injected: bool = False,
    ) -> PostToolUseEvent:
        """Uses the session's last recorded arguments as tool_input."""
        state = self._snapshot(session_id)
        return build_post_tool_use(
            state,
            tool_name,
            sanitize_tool_input(tool_name, state.last_tool_args or {}, self._registry),
            summarize_tool_output(output, context_injected=context_injected),
        )

    def user_prompt_submit(self, session_id: str, prompt: str) -> UserPromptSubmitEvent:
        return build_user_prompt_submit(self._snapshot(session_id), prompt)

    def notification(self, session_id: str, message: str) -> NotificationEvent:
        return build_notification(self._snapshot(session_id), message)

    def pre_compact(
        self,
        session_id: str,
        trigger: Literal["manual", "auto"] = "auto",
        custom_instructions: str | None = None,
    ) -> PreCompactEvent:
        return build_pre_compact(self._snapshot(session_id), trigger, custom_instructions)
