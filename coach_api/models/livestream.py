"""Livestream Model: one broadcast session started by a user."""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, Text

from coach_api.utils.clock import utc_now


class LivestreamStatus(str, Enum):
    """Broadcast state"""
    ACTIVE = "active"
    INACTIVE = "inactive"


class Livestream(SQLModel, table=True):
    __tablename__ = "livestream"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(index=True)
    title: str
    stream_call_id: str = Field(unique=True)
    stream_token: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(default=LivestreamStatus.ACTIVE.value, index=True)
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    ended_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
