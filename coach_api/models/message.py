"""
Message Model

Stores individual chat messages (user or coach) within conversations.
Messages are immutable once created and read back in creation order.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import JSON, DateTime, String, Text

from coach_api.utils.clock import utc_now


class Message(SQLModel, table=True):
    """
    Individual chat message.

    ``sender_id`` is the user for the caller's turn and the coach for the
    relay's assistant turn.
    """
    __tablename__ = "messages"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    conversation_id: str = Field(index=True)
    sender_id: str = Field(index=True)
    content: str = Field(sa_column=Column(Text, nullable=False))
    content_type: str = Field(default="text", sa_column=Column(String, nullable=False, default="text"))
    media_url: Optional[str] = Field(default=None)
    link_metadata: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
