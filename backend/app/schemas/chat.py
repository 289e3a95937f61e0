"""
Schémas Pydantic pour les conversations avec le tuteur IA.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import field_validator

from app.schemas.common import CamelModel


class ChatCreate(CamelModel):
    title: Optional[str] = None


class ChatRename(CamelModel):
    title: str

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre ne peut pas être vide.")
        return v.strip()


class MessageCreate(CamelModel):
    content: str

    @field_validator("content")
    @classmethod
    def content_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le message ne peut pas être vide.")
        return v.strip()


class ChatMessageResponse(CamelModel):
    role: str
    content: str
    timestamp: Optional[datetime] = None


class ChatResponse(CamelModel):
    id: uuid.UUID
    title: str
    is_active: bool
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    messages: List[ChatMessageResponse] = []


class ChatSummary(CamelModel):
    id: uuid.UUID
    title: str
    last_message_at: Optional[datetime] = None
    message_count: int


class ChatListResponse(CamelModel):
    chats: List[ChatSummary]


class MessageExchangeResponse(CamelModel):
    user_message: ChatMessageResponse
    assistant_message: ChatMessageResponse
