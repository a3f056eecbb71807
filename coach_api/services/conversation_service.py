"""
Conversation Service

SQL operations for conversation messages and livestream rows, used by the
SQL-backed message store.
"""

from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from coach_api.models import Conversation, Livestream, LivestreamStatus, Message
from coach_api.utils.clock import utc_now


class ConversationService:
    """Service for managing conversations and messages"""

    def __init__(self, db: Session):
        self.db = db

    def add_message(
        self,
        conversation_id: str,
        sender_id: str,
        content: str,
        content_type: str = "text",
        media_url: Optional[str] = None,
        link_metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        """Add message to conversation"""
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            content_type=content_type,
            media_url=media_url,
            link_metadata=link_metadata,
            created_at=utc_now()
        )
        self.db.add(message)

        # Update conversation timestamp
        conversation = self.db.get(Conversation, conversation_id)
        if conversation:
            conversation.updated_at = utc_now()

        self.db.commit()
        self.db.refresh(message)
        return message

    def get_messages(
        self,
        conversation_id: str,
        limit: int = 200
    ) -> List[Message]:
        """Get messages for conversation, oldest first"""
        statement = select(Message).where(
            Message.conversation_id == conversation_id
        ).order_by(Message.created_at).limit(limit)

        return list(self.db.exec(statement).all())


class LivestreamRepository:
    """Livestream rows owned by a single user"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: str, title: str, stream_call_id: str, stream_token: str) -> Livestream:
        livestream = Livestream(
            user_id=user_id,
            title=title,
            stream_call_id=stream_call_id,
            stream_token=stream_token,
            status=LivestreamStatus.ACTIVE.value,
        )
        self.db.add(livestream)
        self.db.commit()
        self.db.refresh(livestream)
        return livestream

    def stop(self, livestream_id: str, user_id: str) -> Optional[Livestream]:
        """Mark the user's livestream inactive; None if it is not theirs or does not exist"""
        statement = select(Livestream).where(
            Livestream.id == livestream_id,
            Livestream.user_id == user_id
        )
        livestream = self.db.exec(statement).first()
        if livestream is None:
            return None

        livestream.status = LivestreamStatus.INACTIVE.value
        livestream.ended_at = utc_now()
        self.db.add(livestream)
        self.db.commit()
        self.db.refresh(livestream)
        return livestream
