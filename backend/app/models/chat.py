"""
Modèles SQLAlchemy pour les conversations avec le tuteur IA.
"""

import uuid
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class Chat(Base):
    __tablename__ = "chats"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), default="New Chat", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_message_at = Column(DateTime, server_default=func.now())
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    messages = relationship(
        "ChatMessage", cascade="all, delete-orphan", lazy="selectin", order_by="ChatMessage.id",
    )

    def append_message(self, role: str, content: str) -> "ChatMessage":
        """Ajoute un message et met à jour last_message_at."""
        now = datetime.now()
        message = ChatMessage(role=role, content=content, timestamp=now)
        self.messages.append(message)
        self.last_message_at = now
        return message


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(UUID(as_uuid=True), ForeignKey("chats.id", ondelete="CASCADE"), nullable=False)
    role = Column(String(20), nullable=False)  # user, assistant, system
    content = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=datetime.now)
