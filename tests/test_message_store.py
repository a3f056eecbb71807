"""Tests for the message store backends"""

import asyncio
import json
from datetime import timezone

import httpx
import pytest
from sqlmodel import Session

from coach_api.config import Settings
from coach_api.errors import ConfigurationError, PersistenceFailure
from coach_api.models import Conversation, Livestream, Message
from coach_api.services.message_store import (
    RestMessageStore,
    SqlMessageStore,
    create_store,
)


class RestBackendStub:
    def __init__(self, status=201, rows=None):
        self.status = status
        self.rows = rows if rows is not None else []
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.rows)


def _rest_store(stub: RestBackendStub) -> RestMessageStore:
    return RestMessageStore("https://project.example.co/", "service-key", transport=httpx.MockTransport(stub))


class TestRestMessageStore:
    def test_insert_message_posts_row_with_service_key(self):
        stub = RestBackendStub(rows=[{"id": "m1", "conversation_id": "c1", "sender_id": "coach", "content": "hi"}])

        row = asyncio.run(_rest_store(stub).insert_message("c1", "coach", "hi"))

        request = stub.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://project.example.co/rest/v1/messages"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["authorization"] == "Bearer service-key"
        assert request.headers["prefer"] == "return=representation"
        assert json.loads(request.content) == {"conversation_id": "c1", "sender_id": "coach", "content": "hi"}
        assert row["id"] == "m1"

    def test_insert_media_message_includes_metadata(self):
        stub = RestBackendStub(rows=[])
        asyncio.run(
            _rest_store(stub).insert_message(
                "c1", "user-1", "", content_type="image", media_url="https://cdn.example/x.png"
            )
        )
        sent = json.loads(stub.requests[0].content)
        assert sent["content_type"] == "image"
        assert sent["media_url"] == "https://cdn.example/x.png"

    def test_list_messages_filters_and_orders(self):
        stub = RestBackendStub(status=200, rows=[{"id": "m1"}, {"id": "m2"}])

        rows = asyncio.run(_rest_store(stub).list_messages("c1", limit=10))

        params = stub.requests[0].url.params
        assert params["conversation_id"] == "eq.c1"
        assert params["order"] == "created_at.asc"
        assert params["limit"] == "10"
        assert [row["id"] for row in rows] == ["m1", "m2"]

    def test_error_status_raises_persistence_failure(self):
        stub = RestBackendStub(status=409, rows={"message": "duplicate key"})

        with pytest.raises(PersistenceFailure, match="409"):
            asyncio.run(_rest_store(stub).insert_message("c1", "coach", "hi"))

    def test_transport_error_raises_persistence_failure(self):
        def refuse(request):
            raise httpx.ConnectError("refused")

        store = RestMessageStore("https://project.example.co", "k", transport=httpx.MockTransport(refuse))
        with pytest.raises(PersistenceFailure, match="refused"):
            asyncio.run(store.insert_message("c1", "coach", "hi"))

    def test_stop_livestream_unknown_returns_none(self):
        stub = RestBackendStub(status=200, rows=[])

        assert asyncio.run(_rest_store(stub).stop_livestream("ls-1", "user-1")) is None

        request = stub.requests[0]
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.ls-1"
        assert request.url.params["user_id"] == "eq.user-1"
        assert json.loads(request.content)["status"] == "inactive"


class TestSqlMessageStore:
    def test_insert_bumps_conversation_and_lists_in_order(self):
        store = SqlMessageStore.from_url("sqlite://")
        with Session(store.engine) as session:
            conversation = Conversation()
            session.add(conversation)
            session.commit()
            session.refresh(conversation)
            conversation_id = conversation.id
            created_updated_at = conversation.updated_at

        async def scenario():
            await store.insert_message(conversation_id, "user-1", "first")
            await store.insert_message(conversation_id, "coach-1", "second")
            return await store.list_messages(conversation_id)

        rows = asyncio.run(scenario())

        assert [(row["sender_id"], row["content"]) for row in rows] == [("user-1", "first"), ("coach-1", "second")]
        with Session(store.engine) as session:
            assert session.get(Conversation, conversation_id).updated_at >= created_updated_at

    def test_livestream_lifecycle(self):
        store = SqlMessageStore.from_url("sqlite://")

        async def scenario():
            created = await store.create_livestream("user-1", "Yoga", "livestream-user-1-1", "tok")
            foreign = await store.stop_livestream(created["id"], "user-2")
            stopped = await store.stop_livestream(created["id"], "user-1")
            return created, foreign, stopped

        created, foreign, stopped = asyncio.run(scenario())
        assert created["status"] == "active"
        assert foreign is None
        assert stopped["status"] == "inactive"
        assert stopped["ended_at"] is not None

    def test_timestamps_are_timezone_aware(self):
        message = Message(conversation_id="c1", sender_id="coach-1", content="hi")
        livestream = Livestream(user_id="u1", title="Yoga", stream_call_id="call", stream_token="tok")

        assert message.created_at.tzinfo is timezone.utc
        assert livestream.created_at.tzinfo is timezone.utc
        assert Conversation().updated_at.tzinfo is timezone.utc
        for column in (
            Message.__table__.c.created_at,
            Conversation.__table__.c.updated_at,
            Livestream.__table__.c.ended_at,
        ):
            assert column.type.timezone is True

    def test_duplicate_call_id_raises_persistence_failure(self):
        store = SqlMessageStore.from_url("sqlite://")

        async def scenario():
            await store.create_livestream("user-1", "Yoga", "same-call", "tok")
            await store.create_livestream("user-1", "Yoga again", "same-call", "tok")

        with pytest.raises(PersistenceFailure):
            asyncio.run(scenario())


def test_create_store_picks_backend():
    rest = create_store(Settings(store_url="https://project.example.co", store_service_key="k"))
    sql = create_store(Settings(store_url="sqlite://"))
    assert isinstance(rest, RestMessageStore)
    assert isinstance(sql, SqlMessageStore)


def test_create_store_rest_without_key():
    with pytest.raises(ConfigurationError, match="STORE_SERVICE_KEY"):
        create_store(Settings(store_url="https://project.example.co"))
