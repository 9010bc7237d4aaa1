"""Session layer: per-session state records and the store that owns them."""

from agentmonitor.session.state import SessionPhase, SessionSource, SessionState, now_ms
from agentmonitor.session.store import SessionStore

__all__ = [
    "SessionPhase",
    "SessionSource",
    "SessionState",
    "SessionStore",
    "now_ms",
]
