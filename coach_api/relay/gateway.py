"""
AI gateway client.

Opens a streaming chat completion and maps the gateway's failure statuses to
the relay's error taxonomy before any byte is handed to the caller.
"""

from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import httpx

from coach_api.config import Settings
from coach_api.errors import (
    UpstreamProtocolError,
    UpstreamQuotaExceeded,
    UpstreamRateLimited,
)
from coach_api.utils.logger import relay_logger


def build_system_prompt(coach_name: str) -> str:
    """Persona instruction prepended to every chat turn."""
    return (
        f"You are {coach_name}, a professional coach. You provide helpful, supportive "
        "guidance to help users achieve their goals. Keep your responses clear, "
        "encouraging, and actionable."
    )


@dataclass
class UpstreamStream:
    """An open upstream response: its body chunks and how to release it."""

    chunks: AsyncIterator[bytes]
    aclose: Callable[[], Awaitable[None]]


class GatewayClient:
    """Streaming client for the OpenAI-compatible completions endpoint."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.transport = transport

    def build_payload(self, messages: List[Dict[str, Any]], coach_name: str) -> Dict[str, Any]:
        return {
            "model": self.settings.ai_gateway_model,
            "messages": [
                {"role": "system", "content": build_system_prompt(coach_name)},
                *messages,
            ],
            "stream": True,
        }

    def _timeout(self) -> httpx.Timeout:
        # No relay-level deadline unless one is configured
        return httpx.Timeout(self.settings.upstream_timeout_seconds)

    async def open_stream(self, messages: List[Dict[str, Any]], coach_name: str) -> UpstreamStream:
        """
        POST the chat turn with ``stream: true`` and return the open body.

        Raises:
            UpstreamRateLimited: gateway answered 429
            UpstreamQuotaExceeded: gateway answered 402
            UpstreamProtocolError: any other non-success status, a transport
                failure, or a success without a body
        """
        client = httpx.AsyncClient(timeout=self._timeout(), transport=self.transport)
        request = client.build_request(
            "POST",
            self.settings.ai_gateway_url,
            headers={
                "Authorization": f"Bearer {self.settings.ai_gateway_api_key}",
                "Content-Type": "application/json",
            },
            json=self.build_payload(messages, coach_name),
        )

        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            await client.aclose()
            relay_logger.error("AI gateway unreachable", error=str(e))
            raise UpstreamProtocolError(f"AI gateway request failed: {e}")

        async def aclose() -> None:
            try:
                await response.aclose()
            finally:
                await client.aclose()

        if not response.is_success:
            try:
                error_text = (await response.aread()).decode("utf-8", errors="replace")
            except httpx.HTTPError:
                error_text = ""
            finally:
                await aclose()
            relay_logger.error("AI gateway error", status=response.status_code, body=error_text[:500])

            if response.status_code == 429:
                raise UpstreamRateLimited()
            if response.status_code == 402:
                raise UpstreamQuotaExceeded()
            raise UpstreamProtocolError(
                f"AI gateway error: {response.status_code}",
                upstream_status=response.status_code,
            )

        # A 2xx can still end without a single byte of body
        chunks = response.aiter_bytes()
        try:
            first = await _first_chunk(chunks)
        except httpx.HTTPError as e:
            await aclose()
            relay_logger.error("AI gateway stream failed before any data", error=str(e))
            raise UpstreamProtocolError(f"AI gateway request failed: {e}")
        if first is None:
            await aclose()
            raise UpstreamProtocolError(
                "No response body from AI gateway",
                upstream_status=response.status_code,
            )

        return UpstreamStream(
            chunks=_prepend(first, chunks),
            aclose=aclose,
        )


async def _first_chunk(chunks: AsyncIterator[bytes]) -> Optional[bytes]:
    """First non-empty chunk, or None when the body ends without one"""
    async for chunk in chunks:
        if chunk:
            return chunk
    return None


async def _prepend(first: bytes, rest: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    yield first
    async for chunk in rest:
        yield chunk
