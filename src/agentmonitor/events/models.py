"""Wire models for the monitor protocol.

Outbound: the nine canonical hook events and the _meta envelope.
Inbound: ControlResponse, the monitor's reply.
Host side: the tagged union of session lifecycle events the host emits.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from agentmonitor.tools.sanitizer import UNSERIALIZABLE_MARKER


class HookEventName(str, Enum):
    """Canonical event kinds sent to the monitor."""

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    NOTIFICATION = "Notification"
    STOP = "Stop"
    SUBAGENT_STOP = "SubagentStop"
    PRE_COMPACT = "PreCompact"
    SESSION_START = "SessionStart"
    SESSION_END = "SessionEnd"


class MonitorModel(BaseModel):
    """Base model for protocol types with populate_by_name enabled."""

    model_config = ConfigDict(populate_by_name=True)


# -----------------------------------------------------------------------------
# Outbound events
# -----------------------------------------------------------------------------


class HookEvent(MonitorModel):
    """Fields common to every canonical event."""

    model_config = ConfigDict(frozen=True)

    hook_event_name: HookEventName
    session_id: str
    transcript_path: str
    cwd: str

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with unset optional fields dropped.

        A tool_input that cannot be rendered as JSON degrades to
        "[unserializable]" instead of failing the send.
        """
        try:
            return self.model_dump(mode="json", exclude_none=True)
        except ValueError:
            # PydanticSerializationError, or a circular reference in tool_input
            if "tool_input" not in type(self).model_fields:
                raise
            fallback = self.model_copy(update={"tool_input": UNSERIALIZABLE_MARKER})
            return fallback.model_dump(mode="json", exclude_none=True)


class SessionStartEvent(HookEvent):
    hook_event_name: Literal[HookEventName.SESSION_START] = HookEventName.SESSION_START
    source: Literal["startup", "resume", "clear"]


class SessionEndEvent(HookEvent):
    hook_event_name: Literal[HookEventName.SESSION_END] = HookEventName.SESSION_END
    reason: str


class StopEvent(HookEvent):
    hook_event_name: Literal[HookEventName.STOP] = HookEventName.STOP
    stop_hook_active: bool = False


class SubagentStopEvent(HookEvent):
    hook_event_name: Literal[HookEventName.SUBAGENT_STOP] = HookEventName.SUBAGENT_STOP
    stop_hook_active: bool = False


class PreToolUseEvent(HookEvent):
    hook_event_name: Literal[HookEventName.PRE_TOOL_USE] = HookEventName.PRE_TOOL_USE
    tool_name: str
    tool_input: Any = None


class ToolResponseSummary(MonitorModel):
    """What PostToolUse reports about a tool's output (never the output itself)."""

    model_config = ConfigDict(frozen=True)

    title: str | None = None
    output_length: int = 0
    has_metadata: bool = False
    success: bool = True
    context_injected: bool = False


class PostToolUseEvent(HookEvent):
    hook_event_name: Literal[HookEventName.POST_TOOL_USE] = HookEventName.POST_TOOL_USE
    tool_name: str
    tool_input: Any = None
    tool_response: ToolResponseSummary = Field(default_factory=ToolResponseSummary)


class UserPromptSubmitEvent(HookEvent):
    hook_event_name: Literal[HookEventName.USER_PROMPT_SUBMIT] = HookEventName.USER_PROMPT_SUBMIT
    prompt: str


class NotificationEvent(HookEvent):
    hook_event_name: Literal[HookEventName.NOTIFICATION] = HookEventName.NOTIFICATION
    message: str


class PreCompactEvent(HookEvent):
    hook_event_name: Literal[HookEventName.PRE_COMPACT] = HookEventName.PRE_COMPACT
    trigger: Literal["manual", "auto"] = "auto"
    custom_instructions: str | None = None


class EventMeta(MonitorModel):
    """The _meta envelope attached to every outbound event."""

    project: str = "unknown"
    directory: str = ""
    worktree: str = ""
    timestamp: int = 0  # Epoch milliseconds


# -----------------------------------------------------------------------------
# Inbound control response
# -----------------------------------------------------------------------------


class ControlResponse(MonitorModel):
    """Monitor reply instructing block/allow/modify/inject behavior.

    An empty object means "allow". Unknown keys are ignored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    block: bool = False
    reason: str | None = None
    modified_prompt: str | None = Field(default=None, alias="modifiedPrompt")
    context_to_inject: str | None = Field(default=None, alias="contextToInject")
    suppress_output: bool | None = Field(default=None, alias="suppressOutput")
    system_message: str | None = Field(default=None, alias="systemMessage")
    metadata: dict[str, Any] | None = None

    @classmethod
    def allow(cls) -> ControlResponse:
        return cls()

    @classmethod
    def deny(cls, reason: str) -> ControlResponse:
        return cls(block=True, reason=reason)


# -----------------------------------------------------------------------------
# Host lifecycle events
# -----------------------------------------------------------------------------


class HostEventProperties(MonitorModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    session_id: str | None = Field(default=None, alias="sessionID")


class SessionErrorProperties(HostEventProperties):
    error: Any = None

    @property
    def error_name(self) -> str:
        if isinstance(self.error, dict) and isinstance(self.error.get("name"), str):
            return self.error["name"]
        return "unknown"


class HostSessionCreated(MonitorModel):
    type: Literal["session.created"] = "session.created"
    properties: HostEventProperties = Field(default_factory=HostEventProperties)


class HostSessionUpdated(MonitorModel):
    type: Literal["session.updated"] = "session.updated"
    properties: HostEventProperties = Field(default_factory=HostEventProperties)


class HostSessionIdle(MonitorModel):
    type: Literal["session.idle"] = "session.idle"
    properties: HostEventProperties = Field(default_factory=HostEventProperties)


class HostSessionError(MonitorModel):
    type: Literal["session.error"] = "session.error"
    properties: SessionErrorProperties = Field(default_factory=SessionErrorProperties)


class HostSessionDeleted(MonitorModel):
    type: Literal["session.deleted"] = "session.deleted"
    properties: HostEventProperties = Field(default_factory=HostEventProperties)


HostEvent = Annotated[
    Union[
        HostSessionCreated,
        HostSessionUpdated,
        HostSessionIdle,
        HostSessionError,
        HostSessionDeleted,
    ],
    Field(discriminator="type"),
]

HOST_EVENT_TYPES = frozenset(
    {"session.created", "session.updated", "session.idle", "session.error", "session.deleted"}
)

_host_event_adapter: TypeAdapter[HostEvent] = TypeAdapter(HostEvent)


def parse_host_event(raw: dict[str, Any]) -> HostEvent:
    """Narrow a raw host event dict to one of the supported variants.

    Raises:
        pydantic.ValidationError: Unsupported type tag or malformed properties.
    """
    return _host_event_adapter.validate_python(raw)
