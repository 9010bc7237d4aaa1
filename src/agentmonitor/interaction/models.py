"""Prompt and notification records kept by the interaction tracker."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class NotificationType(Enum):
    PERMISSION_NEEDED = "permission_needed"
    IDLE_WARNING = "idle_warning"
    TOOL_BLOCKED = "tool_blocked"
    ERROR_OCCURRED = "error_occurred"
    SESSION_UPDATE = "session_update"
    CONTEXT_LIMIT = "context_limit"
    RATE_LIMITED = "rate_limited"
    CUSTOM = "custom"


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Sentiment(Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    COMMAND = "command"


def _epoch_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True)
class PromptMetadata:
    """One submitted user prompt and what the monitor did with it."""

    prompt_id: str
    session_id: str
    original_prompt: str
    character_count: int
    word_count: int
    has_code_blocks: bool
    has_urls: bool
    sentiment: Sentiment
    timestamp: int = field(default_factory=_epoch_ms)
    modified_prompt: str | None = None
    was_blocked: bool = False
    block_reason: str | None = None
    context_injected: str | None = None

    @property
    def effective_prompt(self) -> str:
        """The text that continues down the pipeline."""
        return self.modified_prompt or self.original_prompt


@dataclass(slots=True)
class NotificationMetadata:
    """A raised notification.

    requires_action is derived from severity when the record is created.
    """

    notification_id: str
    session_id: str
    type: NotificationType
    message: str
    severity: Severity
    requires_action: bool
    timestamp: int = field(default_factory=_epoch_ms)
    dismissed: bool = False
    action_taken: str | None = None


@dataclass(slots=True)
class SessionStats:
    """Aggregates over one session's retained prompt history."""

    total_prompts: int = 0
    blocked_prompts: int = 0
    average_length: int = 0
    code_block_count: int = 0
    url_count: int = 0
    sentiment_breakdown: dict[str, int] = field(default_factory=dict)
