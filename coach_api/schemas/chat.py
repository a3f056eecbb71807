"""Request/response schemas for the chat relay and conversation messages."""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ContentType(str, Enum):
    """How a message's content should be rendered"""
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    LINK = "link"


class LinkMetadata(BaseModel):
    """Preview of the first link found in a message"""
    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None


class ChatMessage(BaseModel):
    """One prior turn of the conversation as sent by the client"""
    model_config = ConfigDict(extra="ignore")

    role: str = Field(..., min_length=1)
    content: str = ""
    content_type: Optional[ContentType] = None
    media_url: Optional[str] = None
    link_metadata: Optional[LinkMetadata] = None

    def to_upstream(self) -> Dict[str, Any]:
        """Shape forwarded to the completions API."""
        return {"role": self.role, "content": self.content}


class ChatRequest(BaseModel):
    """Body of ``POST /chat``"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    messages: List[ChatMessage] = Field(..., min_length=1)
    coach_name: str = Field(..., alias="coachName", min_length=1)
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    coach_id: Optional[str] = Field(default=None, alias="coachId")

    @property
    def can_persist(self) -> bool:
        """The reply is only stored when both the conversation and the coach are known."""
        return bool(self.conversation_id and self.coach_id)


class MessageCreate(BaseModel):
    """Body of ``POST /conversations/{id}/messages`` (the caller's own turn)"""
    content: str = ""
    content_type: ContentType = ContentType.TEXT
    media_url: Optional[str] = None
    link_metadata: Optional[LinkMetadata] = None


class MessageItem(BaseModel):
    """Persisted message as returned to clients"""
    id: str
    conversation_id: str
    sender_id: str
    content: str
    content_type: Optional[str] = ContentType.TEXT.value
    media_url: Optional[str] = None
    link_metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None


class ConversationMessagesResponse(BaseModel):
    """Messages of one conversation in creation order"""
    messages: List[MessageItem]
