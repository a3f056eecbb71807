"""Livestream API Router: start and stop broadcast sessions."""

from fastapi import APIRouter, Depends

from coach_api.config import Settings, get_settings
from coach_api.middleware.auth import CurrentUser, get_current_user
from coach_api.routers.conversations import get_message_store
from coach_api.schemas.livestream import (
    StartLivestreamRequest,
    StartLivestreamResponse,
    StopLivestreamRequest,
    StopLivestreamResponse,
)
from coach_api.services.livestream_service import LivestreamService
from coach_api.services.message_store import MessageStore

router = APIRouter(prefix="/livestreams", tags=["livestream"])


def get_livestream_service(
    settings: Settings = Depends(get_settings),
    store: MessageStore = Depends(get_message_store),
) -> LivestreamService:
    return LivestreamService(store, settings)


@router.post("/start", response_model=StartLivestreamResponse)
async def start_livestream(
    body: StartLivestreamRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: LivestreamService = Depends(get_livestream_service),
):
    return await service.start(current_user.user_id, body.title)


@router.post("/stop", response_model=StopLivestreamResponse)
async def stop_livestream(
    body: StopLivestreamRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: LivestreamService = Depends(get_livestream_service),
):
    return await service.stop(current_user.user_id, body.livestream_id)
