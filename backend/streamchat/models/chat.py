"""
Chat Models - request and response shapes for chats, messages and turns.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..storage.tables import MessageType


class Turn(BaseModel):
    """One conversation turn as posted by the client."""
    id: Optional[int] = None  # present when the turn is already persisted
    type: MessageType
    content: str


class StreamRequest(BaseModel):
    """Body of the streaming endpoints."""
    messages: List[Turn]


class ChatCreate(BaseModel):
    """Chat creation payload."""
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, max_length=255)
    first_message: Optional[str] = Field(None, alias="firstMessage")

    @field_validator("first_message", mode="before")
    @classmethod
    def blank_as_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ChatUpdate(BaseModel):
    """Rename payload."""
    title: str = Field(..., min_length=1, max_length=255)


class MessageOut(BaseModel):
    """Persisted message."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: MessageType
    content: str
    created_at: datetime


class ChatSummary(BaseModel):
    """Chat list entry."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    created_at: datetime
    updated_at: datetime


class ChatDetail(ChatSummary):
    """Chat with its full ordered history."""
    messages: List[MessageOut] = []
    auto_stream: bool = False
