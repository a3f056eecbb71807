"""Routers package for the Coach API."""

from .chat import router as chat_router
from .conversations import router as conversations_router
from .livestream import router as livestream_router

__all__ = ["chat_router", "conversations_router", "livestream_router"]
