"""Event dispatch with explicit failure policy and control-effect bookkeeping.

Every send resolves a FailurePolicy for its event kind:

- OPEN: a transport failure is logged and treated as an "allow" response
- CLOSED: a transport failure raises MonitorUnavailableError so the caller
  refuses the action

The dispatcher also holds control effects that outlive a single send:
context to inject into the session's next PostToolUse, and system messages
for the host to surface. Each is delivered at most once.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from agentmonitor.errors import BlockedByMonitorError, MonitorUnavailableError, TransportError
from agentmonitor.events.models import ControlResponse, EventMeta, HookEvent, HookEventName
from agentmonitor.logging import get_logger

if TYPE_CHECKING:
    from agentmonitor.config.schema import GatingConfig
    from agentmonitor.dispatch.client import MonitorClient

log = get_logger("dispatch")


class FailurePolicy(Enum):
    OPEN = "open"
    CLOSED = "closed"


DEFAULT_POLICIES: dict[HookEventName, FailurePolicy] = {
    HookEventName.PRE_TOOL_USE: FailurePolicy.CLOSED,
}


def policies_from_config(
    gating: GatingConfig,
) -> tuple[dict[HookEventName, FailurePolicy], FailurePolicy]:
    """Translate gating config into (per-kind policies, default policy).

    Unknown event kind names are logged and skipped.
    """
    policies: dict[HookEventName, FailurePolicy] = {}
    for kind, value in gating.policies.items():
        try:
            policies[HookEventName(kind)] = FailurePolicy(value)
        except ValueError:
            log.warning("Ignoring gating policy for unknown event kind %r", kind)
    return policies, FailurePolicy(gating.default_policy)


class EventDispatcher:
    """Sends canonical events to the monitor and applies its replies."""

    def __init__(
        self,
        client: MonitorClient,
        *,
        project: str = "unknown",
        directory: str = "",
        worktree: str = "",
        policies: Mapping[HookEventName, FailurePolicy] | None = None,
        default_policy: FailurePolicy = FailurePolicy.OPEN,
    ) -> None:
        self._client = client
        self._project = project
        self._directory = directory
        self._worktree = worktree
        self._policies = dict(DEFAULT_POLICIES if policies is None else policies)
        self._default_policy = default_policy

        self._pending_context: dict[str, str] = {}
        self._pending_system_messages: dict[str, str] = {}

    @property
    def client(self) -> MonitorClient:
        return self._client

    def policy_for(self, event_name: HookEventName) -> FailurePolicy:
        return self._policies.get(event_name, self._default_policy)

    def build_meta(self) -> EventMeta:
        return EventMeta(
            project=self._project,
            directory=self._directory,
            worktree=self._worktree,
            timestamp=int(time.time() * 1000),
        )

    def build_body(self, event: HookEvent) -> dict[str, Any]:
        body = event.to_payload()
        body["_meta"] = self.build_meta().model_dump()
        return body

    async def send_with_control(
        self,
        event: HookEvent,
        policy: FailurePolicy | None = None,
    ) -> ControlResponse:
        """Send an event and return the monitor's control response.

        Args:
            event: The canonical event to send
            policy: Overrides the configured policy for this call

        Raises:
            MonitorUnavailableError: Transport failed under a CLOSED policy.
        """
        policy = policy or self.policy_for(event.hook_event_name)
        log.info(
            "Sending %s (session=%s%s)",
            event.hook_event_name.value,
            event.session_id,
            _describe(event),
        )

        try:
            control = await self._client.post(self.build_body(event))
        except TransportError as e:
            if policy is FailurePolicy.CLOSED:
                log.error("Refusing %s, monitor unavailable: %s", event.hook_event_name.value, e)
                raise MonitorUnavailableError(event.hook_event_name.value, e) from e
            log.warning("Monitor unavailable for %s, continuing: %s", event.hook_event_name.value, e)
            return ControlResponse.allow()

        if control.block:
            log.info("Monitor blocked %s: %s", event.hook_event_name.value, control.reason)
        return control

    async def send(self, event: HookEvent) -> ControlResponse:
        """Best-effort send: failures are logged regardless of policy."""
        return await self.send_with_control(event, FailurePolicy.OPEN)

    async def gate(self, event: HookEvent, policy: FailurePolicy | None = None) -> ControlResponse:
        """Send a gating event and turn block=true into an exception.

        Raises:
            BlockedByMonitorError: The monitor refused the action.
            MonitorUnavailableError: Transport failed under a CLOSED policy.
        """
        control = await self.send_with_control(event, policy)
        if control.block:
            raise BlockedByMonitorError(control.reason, event_name=event.hook_event_name.value)
        return control

    # --- Deferred control effects ---

    def remember_control(self, session_id: str, control: ControlResponse) -> None:
        """Keep context and system messages from a reply for later delivery."""
        if control.context_to_inject:
            self._pending_context[session_id] = control.context_to_inject
            log.debug("Context queued for next PostToolUse of %s", session_id)
        if control.system_message:
            self._pending_system_messages[session_id] = control.system_message

    def has_pending_context(self, session_id: str) -> bool:
        return session_id in self._pending_context

    def take_context(self, session_id: str) -> str | None:
        return self._pending_context.pop(session_id, None)

    def take_system_message(self, session_id: str) -> str | None:
        return self._pending_system_messages.pop(session_id, None)

    def clear_session(self, session_id: str) -> None:
        self._pending_context.pop(session_id, None)
        self._pending_system_messages.pop(session_id, None)

    async def aclose(self) -> None:
        self._pending_context.clear()
        self._pending_system_messages.clear()
        await self._client.aclose()


def _describe(event: HookEvent) -> str:
    tool_name = getattr(event, "tool_name", None)
    if tool_name:
        return f", tool={tool_name}"
    prompt = getattr(event, "prompt", None)
    if prompt:
        return f", prompt={prompt[:50]!r}"
    return ""
