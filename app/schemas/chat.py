"""Pydantic schemas for realtime hub events."""

from typing import Any

from pydantic import BaseModel, Field


class Frame(BaseModel):
    """Envelope for every WebSocket message in both directions."""

    event: str
    data: Any = None


class ChangeUsername(BaseModel):
    username: str = Field(min_length=1, max_length=64)


class NewMessage(BaseModel):
    message: str


class NewGroup(BaseModel):
    name: str = Field(min_length=1, max_length=256)


class ChatMessageOut(BaseModel):
    message: str
    username: str


class GroupOut(BaseModel):
    name: str
    group_id: str
