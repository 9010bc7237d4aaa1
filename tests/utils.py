"""Shared test utilities for agentmonitor tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

import httpx


class FakeMonitor:
    """Scripted stand-in for the monitor endpoint.

    Records every request body and answers with a fixed reply, or with the
    result of a callable given the parsed body. Use transport() with
    MonitorClient or MonitorPlugin.

    Example:
        monitor = FakeMonitor(reply={"block": True, "reason": "x"})
        client = MonitorClient("http://monitor/agent-monitor", transport=monitor.transport())
    """

    def __init__(
        self,
        reply: dict[str, Any] | Callable[[dict[str, Any]], Any] | None = None,
        *,
        status_code: int = 200,
        raw: bytes | None = None,
        fail: bool = False,
    ) -> None:
        self.reply = reply if reply is not None else {}
        self.status_code = status_code
        self.raw = raw
        self.fail = fail
        self.requests: list[dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)

        if self.fail:
            raise httpx.ConnectError("connection refused", request=request)
        if self.raw is not None:
            return httpx.Response(self.status_code, content=self.raw)

        reply = self.reply(body) if callable(self.reply) else self.reply
        return httpx.Response(self.status_code, json=reply)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def event_names(self) -> list[str]:
        """hook_event_name of every recorded request, in order."""
        return [body["hook_event_name"] for body in self.requests]

    def events(self, name: str) -> list[dict[str, Any]]:
        return [body for body in self.requests if body["hook_event_name"] == name]


def reply_for(event_name: str, reply: dict[str, Any]) -> Callable[[dict[str, Any]], dict[str, Any]]:
    """Reply with `reply` to one event kind and allow everything else."""

    def _reply(body: dict[str, Any]) -> dict[str, Any]:
        return reply if body["hook_event_name"] == event_name else {}

    return _reply


async def wait_for_condition(
    condition: Callable[[], bool], timeout: float = 1.0, interval: float = 0.01
) -> bool:
    """Poll until condition() is true or the timeout passes.

    Returns:
        True if the condition became true, False on timeout
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if condition():
            return True
        await asyncio.sleep(interval)
    return condition()
