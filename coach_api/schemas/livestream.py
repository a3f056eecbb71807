"""Schemas for livestream bookkeeping endpoints."""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class StartLivestreamRequest(BaseModel):
    title: Optional[str] = None


class StopLivestreamRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    livestream_id: Optional[str] = Field(default=None, alias="livestreamId")


class StartLivestreamResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    livestream: Dict[str, Any]
    stream_api_key: str = Field(..., alias="streamApiKey")
    call_id: str = Field(..., alias="callId")
    token: str


class StopLivestreamResponse(BaseModel):
    success: bool = True
    livestream: Dict[str, Any]
