"""Per-session history of user prompts and raised notifications.

Besides storing records, the tracker derives simple prompt features (length,
word count, code blocks, URLs, a heuristic sentiment tag) and flags prompts
that should raise a notification on their own.
"""

from __future__ import annotations

import asyncio
import re
import uuid
from collections import deque
from typing import TYPE_CHECKING

from agentmonitor.interaction.models import (
    NotificationMetadata,
    NotificationType,
    PromptMetadata,
    SessionStats,
    Sentiment,
    Severity,
)
from agentmonitor.logging import get_logger

if TYPE_CHECKING:
    from agentmonitor.events.models import ControlResponse

log = get_logger("interaction")

DEFAULT_MAX_HISTORY = 100
DEFAULT_DISMISS_DELAY = 5.0
CONTEXT_LIMIT_CHARS = 10_000

# Checked in this order; the first matching rule wins
COMMAND_PREFIXES = ("create ", "make ", "build ", "implement ", "fix ", "update ", "delete ", "run ")
NEGATIVE_MARKERS = ("doesn't work", "error", "bug", "wrong", "failed", "can't")
POSITIVE_MARKERS = ("great", "good", "thanks", "perfect", "excellent")

DESTRUCTIVE_MARKERS = ("rm -rf", "format ", "delete all", "drop database")
CREDENTIAL_MARKERS = ("api key", "password", "secret", "credential")

_CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_URL_RE = re.compile(r"[A-Za-z][A-Za-z0-9+.-]*://\S+")


def analyze_sentiment(prompt: str) -> Sentiment:
    """Classify a prompt: command > negative > positive > neutral."""
    lower = prompt.lower()
    if lower.startswith(COMMAND_PREFIXES):
        return Sentiment.COMMAND
    if any(marker in lower for marker in NEGATIVE_MARKERS):
        return Sentiment.NEGATIVE
    if any(marker in lower for marker in POSITIVE_MARKERS):
        return Sentiment.POSITIVE
    return Sentiment.NEUTRAL


def check_triggers(prompt: str) -> NotificationType | None:
    """Return the notification a prompt should raise, if any.

    Destructive operations are checked before credential mentions, which are
    checked before prompt size.
    """
    lower = prompt.lower()
    if any(marker in lower for marker in DESTRUCTIVE_MARKERS):
        return NotificationType.PERMISSION_NEEDED
    if any(marker in lower for marker in CREDENTIAL_MARKERS):
        return NotificationType.TOOL_BLOCKED
    if len(prompt) > CONTEXT_LIMIT_CHARS:
        return NotificationType.CONTEXT_LIMIT
    return None


class InteractionTracker:
    """Stores prompt and notification history per session."""

    def __init__(
        self,
        *,
        max_history: int = DEFAULT_MAX_HISTORY,
        dismiss_delay: float = DEFAULT_DISMISS_DELAY,
    ) -> None:
        self._max_history = max_history
        self._dismiss_delay = dismiss_delay

        self._prompts: dict[str, PromptMetadata] = {}
        self._prompt_history: dict[str, deque[str]] = {}
        self._notifications: dict[str, NotificationMetadata] = {}
        self._notification_queue: list[NotificationMetadata] = []
        self._dismiss_timers: dict[str, asyncio.TimerHandle] = {}

    # --- Prompts ---

    def process_prompt(
        self,
        session_id: str,
        prompt: str,
        control: ControlResponse | None = None,
    ) -> PromptMetadata:
        """Record a submitted prompt together with the monitor's decision.

        History is capped per session; the oldest entry is evicted and its
        record purged from lookup.
        """
        metadata = PromptMetadata(
            prompt_id=f"{session_id}-prompt-{uuid.uuid4().hex[:12]}",
            session_id=session_id,
            original_prompt=prompt,
            character_count=len(prompt),
            word_count=len(prompt.split()),
            has_code_blocks=bool(_CODE_BLOCK_RE.search(prompt)),
            has_urls=bool(_URL_RE.search(prompt)),
            sentiment=analyze_sentiment(prompt),
        )
        if control is not None:
            metadata.modified_prompt = control.modified_prompt
            metadata.was_blocked = control.block
            metadata.block_reason = control.reason
            metadata.context_injected = control.context_to_inject

        self._prompts[metadata.prompt_id] = metadata
        history = self._prompt_history.setdefault(session_id, deque())
        history.append(metadata.prompt_id)
        while len(history) > self._max_history:
            evicted = history.popleft()
            self._prompts.pop(evicted, None)

        return metadata

    def get_prompt(self, prompt_id: str) -> PromptMetadata | None:
        return self._prompts.get(prompt_id)

    def get_prompt_history(self, session_id: str) -> list[PromptMetadata]:
        """Retained prompts for a session, oldest first."""
        history = self._prompt_history.get(session_id, ())
        return [self._prompts[pid] for pid in history if pid in self._prompts]

    def get_session_stats(self, session_id: str) -> SessionStats:
        history = self.get_prompt_history(session_id)
        if not history:
            return SessionStats()

        breakdown = {s.value: 0 for s in Sentiment}
        total_length = 0
        stats = SessionStats(total_prompts=len(history), sentiment_breakdown=breakdown)
        for prompt in history:
            total_length += prompt.character_count
            breakdown[prompt.sentiment.value] += 1
            if prompt.was_blocked:
                stats.blocked_prompts += 1
            if prompt.has_code_blocks:
                stats.code_block_count += 1
            if prompt.has_urls:
                stats.url_count += 1
        stats.average_length = round(total_length / len(history))
        return stats

    def check_triggers(self, prompt: str) -> NotificationType | None:
        return check_triggers(prompt)

    # --- Notifications ---

    def create_notification(
        self,
        session_id: str,
        type: NotificationType,
        message: str,
        severity: Severity = Severity.INFO,
    ) -> NotificationMetadata:
        """Raise a notification.

        Error and critical notifications require action. Info notifications
        dismiss themselves after the configured delay.
        """
        severity = Severity(severity)
        notification = NotificationMetadata(
            notification_id=f"{session_id}-notif-{uuid.uuid4().hex[:12]}",
            session_id=session_id,
            type=NotificationType(type),
            message=message,
            severity=severity,
            requires_action=severity in (Severity.ERROR, Severity.CRITICAL),
        )
        self._notifications[notification.notification_id] = notification
        self._notification_queue.append(notification)
        log.debug(
            "Notification %s (%s/%s): %s",
            notification.notification_id,
            notification.type.value,
            severity.value,
            message,
        )

        if severity is Severity.INFO:
            self._schedule_dismiss(notification)

        return notification

    def get_notification(self, notification_id: str) -> NotificationMetadata | None:
        return self._notifications.get(notification_id)

    def get_notifications(self, session_id: str) -> list[NotificationMetadata]:
        return [n for n in self._notification_queue if n.session_id == session_id]

    def get_pending_notifications(self, session_id: str) -> list[NotificationMetadata]:
        """Undismissed notifications that require action."""
        return [
            n
            for n in self._notification_queue
            if n.session_id == session_id and not n.dismissed and n.requires_action
        ]

    def dismiss_notification(self, notification_id: str, action_taken: str | None = None) -> None:
        notification = self._notifications.get(notification_id)
        if notification is None:
            return
        notification.dismissed = True
        notification.action_taken = action_taken
        self._cancel_dismiss(notification_id)
        self._notification_queue = [
            n for n in self._notification_queue if n.notification_id != notification_id
        ]

    def _schedule_dismiss(self, notification: NotificationMetadata) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No running event loop; %s will not self-dismiss", notification.notification_id)
            return
        self._dismiss_timers[notification.notification_id] = loop.call_later(
            self._dismiss_delay, self._auto_dismiss, notification
        )

    def _auto_dismiss(self, notification: NotificationMetadata) -> None:
        self._dismiss_timers.pop(notification.notification_id, None)
        notification.dismissed = True

    def _cancel_dismiss(self, notification_id: str) -> None:
        handle = self._dismiss_timers.pop(notification_id, None)
        if handle is not None:
            handle.cancel()

    # --- Housekeeping ---

    def get_active_sessions(self) -> list[str]:
        return list(self._prompt_history)

    def clear_session(self, session_id: str) -> None:
        """Forget every prompt, notification and pending timer of one session."""
        for prompt_id in self._prompt_history.pop(session_id, ()):
            self._prompts.pop(prompt_id, None)

        for notification_id in [
            nid for nid, n in self._notifications.items() if n.session_id == session_id
        ]:
            self._cancel_dismiss(notification_id)
            del self._notifications[notification_id]

        self._notification_queue = [
            n for n in self._notification_queue if n.session_id != session_id
        ]

    def dispose(self) -> None:
        for handle in self._dismiss_timers.values():
            handle.cancel()
        self._dismiss_timers.clear()
        self._prompts.clear()
        self._prompt_history.clear()
        self._notifications.clear()
        self._notification_queue = []
