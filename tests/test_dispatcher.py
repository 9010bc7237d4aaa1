"""Tests for the monitor client and event dispatcher.

Tests coverage for:
- src/agentmonitor/dispatch/client.py
- src/agentmonitor/dispatch/dispatcher.py
"""

from __future__ import annotations

import httpx
import pytest

from agentmonitor.config import GatingConfig
from agentmonitor.dispatch import (
    EventDispatcher,
    FailurePolicy,
    MonitorClient,
    encode_body,
    policies_from_config,
)
from agentmonitor.errors import BlockedByMonitorError, MonitorUnavailableError, TransportError
from agentmonitor.events import (
    ControlResponse,
    HookEventName,
    NotificationEvent,
    PostToolUseEvent,
    PreToolUseEvent,
)

from tests.utils import FakeMonitor

ENDPOINT = "http://localhost:37123/agent-monitor"

COMMON = {
    "session_id": "s1",
    "transcript_path": "/proj/.opencode/transcripts/s1.json",
    "cwd": "/proj",
}


def _pre_tool_use(tool_name: str = "Bash") -> PreToolUseEvent:
    return PreToolUseEvent(**COMMON, tool_name=tool_name, tool_input={"_sanitized": True})


def _notification(message: str = "hello") -> NotificationEvent:
    return NotificationEvent(**COMMON, message=message)


def _dispatcher(monitor: FakeMonitor, **kwargs) -> EventDispatcher:
    client = MonitorClient(ENDPOINT, timeout=1.0, transport=monitor.transport())
    return EventDispatcher(
        client, project="demo", directory="/proj", worktree="/proj", **kwargs
    )


# =============================================================================
# MonitorClient
# =============================================================================


class TestMonitorClient:
    """Tests for the HTTP transport."""

    @pytest.mark.asyncio
    async def test_posts_json_to_endpoint(self):
        """Test the request method, URL and body."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = MonitorClient(ENDPOINT, transport=httpx.MockTransport(handler))
        try:
            control = await client.post({"hook_event_name": "Stop"})
        finally:
            await client.aclose()

        assert control == ControlResponse()
        assert seen[0].method == "POST"
        assert str(seen[0].url) == ENDPOINT
        assert seen[0].headers["content-type"] == "application/json"

    @pytest.mark.asyncio
    async def test_non_2xx_is_transport_error(self):
        """Test that an error status raises TransportError with the code."""
        client = MonitorClient(ENDPOINT, transport=FakeMonitor(status_code=503).transport())

        with pytest.raises(TransportError) as exc_info:
            await client.post({})
        await client.aclose()

        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_malformed_json_is_transport_error(self):
        """Test that a non-JSON reply raises TransportError."""
        client = MonitorClient(ENDPOINT, transport=FakeMonitor(raw=b"<html>").transport())

        with pytest.raises(TransportError):
            await client.post({})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_non_object_reply_is_transport_error(self):
        """Test that a JSON array reply raises TransportError."""
        client = MonitorClient(ENDPOINT, transport=FakeMonitor(reply=lambda body: [1, 2]).transport())

        with pytest.raises(TransportError):
            await client.post({})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_wrong_field_types_are_transport_error(self):
        """Test that a reply not matching ControlResponse raises TransportError."""
        client = MonitorClient(
            ENDPOINT, transport=FakeMonitor(reply={"block": {"nested": True}}).transport()
        )

        with pytest.raises(TransportError):
            await client.post({})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_connection_error_is_transport_error(self):
        """Test that a refused connection raises TransportError."""
        client = MonitorClient(ENDPOINT, transport=FakeMonitor(fail=True).transport())

        with pytest.raises(TransportError):
            await client.post({})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self):
        """Test that a timeout raises TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = MonitorClient(ENDPOINT, timeout=0.1, transport=httpx.MockTransport(handler))

        with pytest.raises(TransportError, match="Timed out"):
            await client.post({})
        await client.aclose()

    def test_encode_body_replaces_unserializable(self):
        """Test that values JSON cannot represent do not break encoding."""
        body = encode_body({"a": 1, "b": object()})

        assert body == b'{"a": 1, "b": "[unserializable]"}'


# =============================================================================
# Failure policy
# =============================================================================


class TestFailurePolicy:
    """Tests for explicit fail-open/fail-closed handling."""

    def test_default_policies(self):
        """Test that PreToolUse fails closed and other kinds fail open."""
        dispatcher = _dispatcher(FakeMonitor())

        assert dispatcher.policy_for(HookEventName.PRE_TOOL_USE) is FailurePolicy.CLOSED
        for kind in HookEventName:
            if kind is not HookEventName.PRE_TOOL_USE:
                assert dispatcher.policy_for(kind) is FailurePolicy.OPEN

    @pytest.mark.asyncio
    async def test_closed_policy_raises(self):
        """Test that a gating event refuses the action when the monitor is down."""
        dispatcher = _dispatcher(FakeMonitor(fail=True))

        with pytest.raises(MonitorUnavailableError) as exc_info:
            await dispatcher.send_with_control(_pre_tool_use())
        await dispatcher.aclose()

        assert exc_info.value.event_name == "PreToolUse"
        assert isinstance(exc_info.value.cause, TransportError)

    @pytest.mark.asyncio
    async def test_open_policy_allows(self):
        """Test that a non-gating event continues when the monitor is down."""
        dispatcher = _dispatcher(FakeMonitor(status_code=500))

        control = await dispatcher.send_with_control(_notification())
        await dispatcher.aclose()

        assert control.block is False

    @pytest.mark.asyncio
    async def test_send_is_always_best_effort(self):
        """Test that send() never raises for transport failures."""
        dispatcher = _dispatcher(FakeMonitor(fail=True))

        control = await dispatcher.send(_pre_tool_use())
        await dispatcher.aclose()

        assert control == ControlResponse.allow()

    @pytest.mark.asyncio
    async def test_explicit_policy_overrides(self):
        """Test that a call-site policy wins over the configured one."""
        dispatcher = _dispatcher(FakeMonitor(fail=True))

        with pytest.raises(MonitorUnavailableError):
            await dispatcher.send_with_control(_notification(), FailurePolicy.CLOSED)
        await dispatcher.aclose()

    @pytest.mark.asyncio
    async def test_configured_policies(self):
        """Test policies built from gating config."""
        policies, default = policies_from_config(
            GatingConfig(default_policy="closed", policies={"PreToolUse": "open", "Bogus": "open"})
        )
        dispatcher = _dispatcher(FakeMonitor(fail=True), policies=policies, default_policy=default)

        assert HookEventName.PRE_TOOL_USE in policies
        assert len(policies) == 1
        assert (await dispatcher.send_with_control(_pre_tool_use())).block is False
        with pytest.raises(MonitorUnavailableError):
            await dispatcher.send_with_control(_notification())
        await dispatcher.aclose()


# =============================================================================
# Gating and envelope
# =============================================================================


class TestGate:
    """Tests for monitor-directed blocking."""

    @pytest.mark.asyncio
    async def test_block_raises_with_reason(self):
        """Test that block=true surfaces the monitor's reason."""
        dispatcher = _dispatcher(FakeMonitor(reply={"block": True, "reason": "x"}))

        with pytest.raises(BlockedByMonitorError) as exc_info:
            await dispatcher.gate(_pre_tool_use())
        await dispatcher.aclose()

        assert "x" in str(exc_info.value)
        assert exc_info.value.reason == "x"
        assert exc_info.value.event_name == "PreToolUse"

    @pytest.mark.asyncio
    async def test_block_without_reason_uses_default(self):
        """Test the generic message when the monitor gives no reason."""
        dispatcher = _dispatcher(FakeMonitor(reply={"block": True}))

        with pytest.raises(BlockedByMonitorError) as exc_info:
            await dispatcher.gate(_pre_tool_use())
        await dispatcher.aclose()

        assert str(exc_info.value) == BlockedByMonitorError.DEFAULT_REASON

    @pytest.mark.asyncio
    async def test_allow_returns_control(self):
        """Test that an allowed gate returns the full reply."""
        dispatcher = _dispatcher(FakeMonitor(reply={"contextToInject": "ctx"}))

        control = await dispatcher.gate(_pre_tool_use())
        await dispatcher.aclose()

        assert control.context_to_inject == "ctx"


class TestEnvelope:
    """Tests for the request body."""

    @pytest.mark.asyncio
    async def test_meta_envelope(self):
        """Test that every body carries _meta next to the event fields."""
        monitor = FakeMonitor()
        dispatcher = _dispatcher(monitor)

        await dispatcher.send(_notification("ping"))
        await dispatcher.aclose()

        body = monitor.requests[0]
        assert body["hook_event_name"] == "Notification"
        assert body["message"] == "ping"
        assert body["session_id"] == "s1"
        meta = body["_meta"]
        assert meta["project"] == "demo"
        assert meta["directory"] == "/proj"
        assert meta["worktree"] == "/proj"
        assert isinstance(meta["timestamp"], int)
        assert meta["timestamp"] > 1_600_000_000_000

    @pytest.mark.asyncio
    async def test_post_tool_use_body(self):
        """Test the PostToolUse body shape."""
        monitor = FakeMonitor()
        dispatcher = _dispatcher(monitor)

        await dispatcher.send(PostToolUseEvent(**COMMON, tool_name="Grep", tool_input={"pattern": "x"}))
        await dispatcher.aclose()

        body = monitor.requests[0]
        assert body["tool_response"]["success"] is True
        # title is unset, so it is left out
        assert set(body["tool_response"]) == {
            "output_length",
            "has_metadata",
            "success",
            "context_injected",
        }


# =============================================================================
# Deferred control effects
# =============================================================================


class TestDeferredEffects:
    """Tests for context injection and system messages."""

    def test_context_delivered_at_most_once(self):
        """Test that queued context is handed out once."""
        dispatcher = _dispatcher(FakeMonitor())
        dispatcher.remember_control("s1", ControlResponse(context_to_inject="ctx"))

        assert dispatcher.has_pending_context("s1")
        assert dispatcher.take_context("s1") == "ctx"
        assert dispatcher.take_context("s1") is None
        assert not dispatcher.has_pending_context("s1")

    def test_context_keyed_by_session(self):
        """Test that context for one session is not visible to another."""
        dispatcher = _dispatcher(FakeMonitor())
        dispatcher.remember_control("s1", ControlResponse(context_to_inject="ctx"))

        assert dispatcher.take_context("s2") is None
        assert dispatcher.take_context("s1") == "ctx"

    def test_system_message(self):
        """Test that system messages are stored for the caller."""
        dispatcher = _dispatcher(FakeMonitor())
        dispatcher.remember_control("s1", ControlResponse(system_message="note"))

        assert dispatcher.take_system_message("s1") == "note"
        assert dispatcher.take_system_message("s1") is None

    def test_clear_session(self):
        """Test that clearing drops everything queued for a session."""
        dispatcher = _dispatcher(FakeMonitor())
        dispatcher.remember_control(
            "s1", ControlResponse(context_to_inject="ctx", system_message="note")
        )

        dispatcher.clear_session("s1")

        assert dispatcher.take_context("s1") is None
        assert dispatcher.take_system_message("s1") is None
