"""
Livestream Service

Bookkeeping for broadcasts. The video itself flows through the third-party
real-time SDK; this service only records sessions and mints the SDK's user
token.
"""

import time
from typing import Any, Dict, Optional

from jose import jwt

from coach_api.config import Settings
from coach_api.errors import LivestreamError
from coach_api.services.message_store import MessageStore
import logging

logger = logging.getLogger(__name__)

STREAM_TOKEN_TTL_SECONDS = 60 * 60 * 24


def build_call_id(user_id: str, now_ms: Optional[int] = None) -> str:
    """Unique call id for a user's broadcast."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"livestream-{user_id}-{now_ms}"


def mint_stream_token(user_id: str, api_secret: str, now: Optional[int] = None) -> str:
    """HS256 user token accepted by the video SDK, valid for 24 hours."""
    issued_at = int(time.time()) if now is None else now
    return jwt.encode(
        {
            "user_id": user_id,
            "iat": issued_at,
            "exp": issued_at + STREAM_TOKEN_TTL_SECONDS,
        },
        api_secret,
        algorithm="HS256",
    )


class LivestreamService:
    """Starts and stops livestream sessions for the authenticated user"""

    def __init__(self, store: MessageStore, settings: Settings):
        self.store = store
        self.settings = settings

    async def start(self, user_id: str, title: Optional[str]) -> Dict[str, Any]:
        """
        Create an active livestream row and a token for the SDK.

        Raises:
            ConfigurationError: stream credentials are not configured
            LivestreamError: title missing
        """
        self.settings.require("stream_api_key", "stream_api_secret")
        if not title or not title.strip():
            raise LivestreamError("Title is required")

        logger.info(f"Creating livestream for user: {user_id}")
        call_id = build_call_id(user_id)
        token = mint_stream_token(user_id, self.settings.stream_api_secret)

        livestream = await self.store.create_livestream(
            user_id=user_id,
            title=title.strip(),
            stream_call_id=call_id,
            stream_token=token,
        )
        logger.info(f"Livestream created successfully: {livestream.get('id')}")

        return {
            "success": True,
            "livestream": livestream,
            "streamApiKey": self.settings.stream_api_key,
            "callId": call_id,
            "token": token,
        }

    async def stop(self, user_id: str, livestream_id: Optional[str]) -> Dict[str, Any]:
        """
        Mark the user's livestream inactive.

        Raises:
            LivestreamError: id missing, or no such livestream owned by the user
        """
        if not livestream_id:
            raise LivestreamError("Livestream ID is required")

        logger.info(f"Stopping livestream: {livestream_id}")
        livestream = await self.store.stop_livestream(livestream_id, user_id)
        if livestream is None:
            raise LivestreamError("Livestream not found")

        logger.info(f"Livestream stopped successfully: {livestream.get('id')}")
        return {"success": True, "livestream": livestream}
