"""
Streaming Chat Relay

Forwards a chat turn to the AI gateway, hands the byte stream back to the
caller untouched and records the assistant's reply in the background.
"""

from coach_api.relay.sse import SseLineDecoder, StreamFrame
from coach_api.relay.tee import StreamTee, TeeBranch
from coach_api.relay.service import ChatRelay, RelayStream

__all__ = [
    "SseLineDecoder",
    "StreamFrame",
    "StreamTee",
    "TeeBranch",
    "ChatRelay",
    "RelayStream",
]
