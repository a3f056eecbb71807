"""
Message Store

Persistence for messages and livestream rows. Two backends share one async
interface:

- ``RestMessageStore``: the managed backend's REST table API over httpx,
  authenticated with the service key.
- ``SqlMessageStore``: a SQL database through SQLModel, for local
  development and tests.

Every failure surfaces as ``PersistenceFailure``.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import httpx
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
import logging

from coach_api.config import Settings
from coach_api.db.config import create_db_engine
from coach_api.db.init import init_db
from coach_api.errors import PersistenceFailure
from coach_api.models import LivestreamStatus
from coach_api.services.conversation_service import ConversationService, LivestreamRepository
from coach_api.utils.clock import utc_now

logger = logging.getLogger(__name__)

MESSAGE_COLUMNS = "id,conversation_id,sender_id,content,content_type,media_url,link_metadata,created_at"


class MessageStore(ABC):
    """Async persistence interface used by the relay and the routers"""

    @abstractmethod
    async def insert_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        content_type: str = "text",
        media_url: Optional[str] = None,
        link_metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Insert one message row and return it"""

    @abstractmethod
    async def list_messages(self, conversation_id: str, limit: int = 200) -> List[Dict[str, Any]]:
        """Messages of a conversation, oldest first"""

    @abstractmethod
    async def create_livestream(
        self, user_id: str, title: str, stream_call_id: str, stream_token: str
    ) -> Dict[str, Any]:
        """Insert an active livestream row and return it"""

    @abstractmethod
    async def stop_livestream(self, livestream_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        """Mark the user's livestream inactive; None when no such row belongs to the user"""

    async def aclose(self) -> None:
        """Release backend resources"""


class RestMessageStore(MessageStore):
    """Managed backend REST tables (``{base_url}/rest/v1/<table>``)"""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.transport = transport
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/rest/v1/{table}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, params=params, json=json, headers=self._headers())
        except httpx.HTTPError as e:
            raise PersistenceFailure(f"{method} {table} failed: {e}")

        if not response.is_success:
            raise PersistenceFailure(
                f"{method} {table} failed with status {response.status_code}: {response.text[:200]}",
                details={"status": response.status_code},
            )
        if not response.content:
            return []
        try:
            data = response.json()
        except ValueError as e:
            raise PersistenceFailure(f"{method} {table} returned invalid JSON: {e}")
        return data if isinstance(data, list) else [data]

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
        if content_type != "text":
            row["content_type"] = content_type
        if media_url is not None:
            row["media_url"] = media_url
        if link_metadata is not None:
            row["link_metadata"] = link_metadata

        rows = await self._request("POST", "messages", json=row)
        return rows[0] if rows else row

    async def list_messages(self, conversation_id: str, limit: int = 200) -> List[Dict[str, Any]]:
        return await self._request(
            "GET",
            "messages",
            params={
                "select": MESSAGE_COLUMNS,
                "conversation_id": f"eq.{conversation_id}",
                "order": "created_at.asc",
                "limit": str(limit),
            },
        )

    async def create_livestream(
        self, user_id: str, title: str, stream_call_id: str, stream_token: str
    ) -> Dict[str, Any]:
        rows = await self._request(
            "POST",
            "livestream",
            json={
                "user_id": user_id,
                "title": title,
                "stream_call_id": stream_call_id,
                "stream_token": stream_token,
                "status": LivestreamStatus.ACTIVE.value,
            },
        )
        if not rows:
            raise PersistenceFailure("livestream insert returned no row")
        return rows[0]

    async def stop_livestream(self, livestream_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        rows = await self._request(
            "PATCH",
            "livestream",
            params={"id": f"eq.{livestream_id}", "user_id": f"eq.{user_id}"},
            json={
                "status": LivestreamStatus.INACTIVE.value,
                "ended_at": utc_now().isoformat(),
            },
        )
        return rows[0] if rows else None


class SqlMessageStore(MessageStore):
    """SQL database through SQLModel; blocking work runs in worker threads"""

    def __init__(self, engine: Engine):
        self.engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "SqlMessageStore":
        engine = create_db_engine(database_url)
        init_db(engine)
        return cls(engine)

    async def _run(self, operation: str, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"{operation} failed: {e}")

    def _insert_message(self, conversation_id, sender_id, content, content_type, media_url, link_metadata):
        with Session(self.engine) as session:
            message = ConversationService(session).add_message(
                conversation_id=conversation_id,
                sender_id=sender_id,
                content=content,
                content_type=content_type,
                media_url=media_url,
                link_metadata=link_metadata,
            )
            return message.model_dump(mode="json")

    def _list_messages(self, conversation_id, limit):
        with Session(self.engine) as session:
            messages = ConversationService(session).get_messages(conversation_id, limit=limit)
            return [message.model_dump(mode="json") for message in messages]

    def _create_livestream(self, user_id, title, stream_call_id, stream_token):
        with Session(self.engine) as session:
            livestream = LivestreamRepository(session).create(user_id, title, stream_call_id, stream_token)
            return livestream.model_dump(mode="json")

    def _stop_livestream(self, livestream_id, user_id):
        with Session(self.engine) as session:
            livestream = LivestreamRepository(session).stop(livestream_id, user_id)
            return livestream.model_dump(mode="json") if livestream else None

    async def insert_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        content_type: str = "text",
        media_url: Optional[str] = None,
        link_metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self._run(
            "insert message", self._insert_message,
            conversation_id, sender_id, content, content_type, media_url, link_metadata,
        )

    async def list_messages(self, conversation_id: str, limit: int = 200) -> List[Dict[str, Any]]:
        return await self._run("list messages", self._list_messages, conversation_id, limit)

    async def create_livestream(
        self, user_id: str, title: str, stream_call_id: str, stream_token: str
    ) -> Dict[str, Any]:
        return await self._run(
            "create livestream", self._create_livestream,
            user_id, title, stream_call_id, stream_token,
        )

    async def stop_livestream(self, livestream_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return await self._run("stop livestream", self._stop_livestream, livestream_id, user_id)

    async def aclose(self) -> None:
        self.engine.dispose()


def create_store(settings: Settings) -> MessageStore:
    """Pick the backend from ``STORE_URL``."""
    settings.require("store_url")
    if settings.store_is_rest:
        settings.require("store_service_key")
        return RestMessageStore(settings.store_url, settings.store_service_key)
    return SqlMessageStore.from_url(settings.store_url)


_stores: Dict[Tuple[str, Optional[str]], MessageStore] = {}
_stores_lock = threading.Lock()


def get_store(settings: Settings) -> MessageStore:
    """Process-wide store per (URL, key), so SQL engines are created once."""
    key = (settings.store_url or "", settings.store_service_key)
    with _stores_lock:
        store = _stores.get(key)
        if store is None:
            store = create_store(settings)
            _stores[key] = store
            logger.info("Message store ready: %s", type(store).__name__)
        return store


async def close_stores() -> None:
    """Dispose every cached store (application shutdown)."""
    with _stores_lock:
        stores = list(_stores.values())
        _stores.clear()
    for store in stores:
        await store.aclose()
