"""HTTP transport to the monitor endpoint."""

from __future__ import annotations

import json
from typing import Any

import httpx
from pydantic import ValidationError

from agentmonitor.errors import TransportError
from agentmonitor.events.models import ControlResponse
from agentmonitor.logging import get_logger
from agentmonitor.tools.sanitizer import UNSERIALIZABLE_MARKER

log = get_logger("transport")


def _json_fallback(value: Any) -> str:
    return UNSERIALIZABLE_MARKER


def encode_body(body: dict[str, Any]) -> bytes:
    """Serialize a request body; values JSON cannot represent are replaced."""
    return json.dumps(body, default=_json_fallback).encode("utf-8")


class MonitorClient:
    """POSTs JSON events to the monitor and parses its control responses.

    The underlying httpx.AsyncClient is created on first use and reused until
    aclose().
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            endpoint: Full URL of the monitor endpoint
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    async def post(self, body: dict[str, Any]) -> ControlResponse:
        """Send one event and return the monitor's control response.

        Raises:
            TransportError: Connection failure, timeout, non-2xx status, or a
                reply that is not a JSON object matching ControlResponse.
        """
        try:
            response = await self._get_client().post(
                self._endpoint,
                content=encode_body(body),
                headers={"Content-Type": "application/json"},
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Timed out after {self._timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to reach monitor at {self._endpoint}: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"Failed to send event: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"Monitor replied with invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise TransportError(f"Monitor reply is not an object: {type(data).__name__}")

        try:
            return ControlResponse.model_validate(data)
        except ValidationError as e:
            raise TransportError(f"Malformed control response: {e}") from e

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
