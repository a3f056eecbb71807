"""
Chat API Router

Streams the coach's answer straight from the AI gateway while the reply is
recorded in the background.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response, StreamingResponse
from pydantic import ValidationError
from starlette.background import BackgroundTask

from coach_api.config import Settings, get_settings
from coach_api.errors import InvalidChatRequest, RelayError, UpstreamProtocolError
from coach_api.relay import ChatRelay
from coach_api.schemas.chat import ChatRequest

import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

chat_relay = ChatRelay()


def get_chat_relay() -> ChatRelay:
    """Dependency returning the process-wide relay."""
    return chat_relay


def _validation_message(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid chat request: {location}: {first.get('msg')}" if location else "Invalid chat request"


@router.post("/chat")
async def chat(
    request: Request,
    settings: Settings = Depends(get_settings),
    relay: ChatRelay = Depends(get_chat_relay),
):
    """
    Relay one chat turn.

    Body: ``{messages: [{role, content, ...}], coachName, conversationId?, coachId?}``

    Returns:
        ``text/event-stream`` with the gateway's bytes untouched, or a JSON
        ``{error}`` with 400/402/429/500 before anything is streamed
    """
    try:
        body = await request.json()
    except ValueError:
        raise InvalidChatRequest("Request body must be valid JSON")

    try:
        turn = ChatRequest.model_validate(body)
    except ValidationError as e:
        raise InvalidChatRequest(_validation_message(e))

    try:
        stream = await relay.open(turn, settings)
    except RelayError:
        raise
    except Exception as e:
        logger.error(f"Chat error: {str(e)}", exc_info=True)
        raise UpstreamProtocolError(str(e) or "Unknown error")

    logger.info("Streaming response from AI gateway")
    return StreamingResponse(
        stream.client_body(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
        background=BackgroundTask(stream.aclose),
    )


@router.options("/chat")
async def chat_preflight():
    """Any OPTIONS on the chat route answers 200 with an empty body."""
    return Response(status_code=200)
