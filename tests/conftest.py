"""Shared fixtures and fakes for the Coach API tests."""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from coach_api.config import Settings
from coach_api.errors import PersistenceFailure
from coach_api.services.message_store import MessageStore


def sse_delta(text: str) -> bytes:
    """One gateway event carrying ``text`` as the first choice's delta."""
    payload = {"choices": [{"index": 0, "delta": {"content": text}}]}
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


SSE_DONE = b"data: [DONE]\n\n"


def sse_stream(*parts: str, done: bool = True) -> bytes:
    body = b"".join(sse_delta(part) for part in parts)
    return body + SSE_DONE if done else body


class FakeStore(MessageStore):
    """In-memory store that records every call"""

    def __init__(self, fail_inserts: bool = False):
        self.fail_inserts = fail_inserts
        self.inserts: List[Dict[str, Any]] = []
        self.livestreams: Dict[str, Dict[str, Any]] = {}

    async def insert_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        content_type: str = "text",
        media_url: Optional[str] = None,
        link_metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        row = {
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "content": content,
        }
        self.inserts.append(row)
        if self.fail_inserts:
            raise PersistenceFailure("insert message failed: connection refused")
        return {"id": f"msg-{len(self.inserts)}", **row}

    async def list_messages(self, conversation_id: str, limit: int = 200) -> List[Dict[str, Any]]:
        return [
            {"id": f"msg-{index}", **row}
            for index, row in enumerate(self.inserts, start=1)
            if row["conversation_id"] == conversation_id
        ]

    async def create_livestream(self, user_id, title, stream_call_id, stream_token):
        row = {
            "id": f"ls-{len(self.livestreams) + 1}",
            "user_id": user_id,
            "title": title,
            "stream_call_id": stream_call_id,
            "stream_token": stream_token,
            "status": "active",
        }
        self.livestreams[row["id"]] = row
        return row

    async def stop_livestream(self, livestream_id, user_id):
        row = self.livestreams.get(livestream_id)
        if row is None or row["user_id"] != user_id:
            return None
        row["status"] = "inactive"
        return row


class GatewayStub:
    """
    ``httpx.MockTransport`` handler playing the AI gateway.

    Each request is answered with ``status`` and the given ``chunks`` as a
    streamed body; an ``error`` is raised after the chunks when set.
    """

    def __init__(
        self,
        chunks: Optional[List[bytes]] = None,
        status: int = 200,
        body: Optional[bytes] = None,
        error: Optional[Exception] = None,
    ):
        self.chunks = chunks or []
        self.status = status
        self.body = body
        self.error = error
        self.requests: List[httpx.Request] = []

    async def _stream(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.body is not None:
            return httpx.Response(self.status, content=self.body)
        return httpx.Response(
            self.status,
            headers={"content-type": "text/event-stream"},
            content=self._stream(),
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def last_payload(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ai_gateway_api_key="test-gateway-key",
        ai_gateway_url="https://gateway.test/v1/chat/completions",
        store_url="sqlite://",
        auth_jwt_secret="test-jwt-secret",
        stream_api_key="stream-key",
        stream_api_secret="stream-secret",
        relay_queue_size=4,
    )


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def chat_body() -> Dict[str, Any]:
    return {
        "messages": [{"role": "user", "content": "How do I keep my streak going?"}],
        "coachName": "Mary",
        "conversationId": "conv-1",
        "coachId": "coach-1",
    }
