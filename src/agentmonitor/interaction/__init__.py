"""Prompt and notification tracking."""

from agentmonitor.interaction.models import (
    NotificationMetadata,
    NotificationType,
    PromptMetadata,
    Sentiment,
    SessionStats,
    Severity,
)
from agentmonitor.interaction.tracker import (
    InteractionTracker,
    analyze_sentiment,
    check_triggers,
)

__all__ = [
    "InteractionTracker",
    "NotificationMetadata",
    "NotificationType",
    "PromptMetadata",
    "Sentiment",
    "SessionStats",
    "Severity",
    "analyze_sentiment",
    "check_triggers",
]
