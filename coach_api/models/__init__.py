"""SQLModel tables mirrored from the managed backend's schema."""

from .conversation import Conversation
from .message import Message
from .livestream import Livestream, LivestreamStatus

__all__ = ["Conversation", "Message", "Livestream", "LivestreamStatus"]
