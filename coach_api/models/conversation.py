"""
Conversation Model

Conversation metadata for chats between a user and a coach. Participants are
tracked by the managed backend; this service only reads the conversation id
and bumps ``updated_at`` when a message is added.
"""

import uuid
from datetime import datetime

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime

from coach_api.utils.clock import utc_now


class Conversation(SQLModel, table=True):
    """Conversation metadata for chat sessions."""
    __tablename__ = "conversations"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
