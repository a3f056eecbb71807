"""
Conversation Messages Router

The caller stores its own turn here and reads conversations back, including
coach replies recorded by the relay after the live stream was abandoned.
"""

from fastapi import APIRouter, Depends, status

from coach_api.config import Settings, get_settings
from coach_api.middleware.auth import CurrentUser, get_current_user
from coach_api.schemas.chat import ConversationMessagesResponse, MessageCreate, MessageItem
from coach_api.services.message_store import MessageStore, get_store

import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["conversations"])


def get_message_store(settings: Settings = Depends(get_settings)) -> MessageStore:
    """Dependency returning the configured message store."""
    return get_store(settings)


@router.get("/{conversation_id}/messages", response_model=ConversationMessagesResponse)
async def get_conversation_messages(
    conversation_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
):
    """Get all messages for a conversation, oldest first"""
    rows = await store.list_messages(conversation_id)
    return ConversationMessagesResponse(messages=[MessageItem(**row) for row in rows])


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageItem,
    status_code=status.HTTP_201_CREATED,
)
async def add_conversation_message(
    conversation_id: str,
    message: MessageCreate,
    current_user: CurrentUser = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
):
    """Store the authenticated user's own turn before it is relayed"""
    logger.info(f"Message from user {current_user.user_id} in conversation {conversation_id}")
    row = await store.insert_message(
        conversation_id=conversation_id,
        sender_id=current_user.user_id,
        content=message.content,
        content_type=message.content_type.value,
        media_url=message.media_url,
        link_metadata=message.link_metadata.model_dump(exclude_none=True) if message.link_metadata else None,
    )
    return MessageItem(**row)
