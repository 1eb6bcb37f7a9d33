"""Request and response bodies for the conversation/message API."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import ConversationType, MessageType


class ConversationCreate(BaseModel):
    """Start (or reopen) a direct conversation with one user."""

    recipient_id: uuid.UUID


class MessageCreate(BaseModel):
    conversation_id: uuid.UUID
    content: str = Field(min_length=1, max_length=10000)
    type: MessageType = MessageType.TEXT


class MessageUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=10000)


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    conversation_id: uuid.UUID
    sender_id: uuid.UUID
    content: str
    type: MessageType
    created_at: datetime | None = None


class ConversationOut(BaseModel):
    id: uuid.UUID
    type: ConversationType
    participant_ids: list[uuid.UUID]
    messages: list[MessageOut] = Field(default_factory=list)
