"""Transport to the monitor and control-response handling."""

from agentmonitor.dispatch.client import MonitorClient, encode_body
from agentmonitor.dispatch.dispatcher import (
    DEFAULT_POLICIES,
    EventDispatcher,
    FailurePolicy,
    policies_from_config,
)

__all__ = [
    "DEFAULT_POLICIES",
    "EventDispatcher",
    "FailurePolicy",
    "MonitorClient",
    "encode_body",
    "policies_from_config",
]
