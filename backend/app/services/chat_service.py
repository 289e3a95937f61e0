"""
Service métier pour les conversations élève ↔ tuteur IA.
"""

import uuid
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.exceptions import NotFoundError, UpstreamTimeoutError
from app.models.chat import Chat
from app.models.school import School
from app.models.school_class import SchoolClass
from app.schemas.auth import CurrentUser
from app.schemas.chat import (
    ChatCreate,
    ChatListResponse,
    ChatMessageResponse,
    ChatRename,
    ChatResponse,
    ChatSummary,
    MessageCreate,
    MessageExchangeResponse,
)
from app.services import ai_client

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"
MAX_LISTED_CHATS = 50


def create_chat(db: Session, actor: CurrentUser, data: ChatCreate) -> ChatResponse:
    title = (data.title or "").strip() or DEFAULT_TITLE
    chat = Chat(student_id=actor.id, title=title)
    db.add(chat)
    db.commit()
    db.refresh(chat)
    logger.info("Conversation %s créée par l'élève %s", chat.id, actor.id)
    return _to_response(chat)


def get_chats(db: Session, actor: CurrentUser) -> ChatListResponse:
    """Conversations actives de l'élève, la plus récente d'abord."""
    chats = db.execute(
        select(Chat)
        .where(Chat.student_id == actor.id, Chat.is_active.is_(True))
        .order_by(Chat.last_message_at.desc())
        .limit(MAX_LISTED_CHATS)
    ).scalars().all()
    return ChatListResponse(chats=[
        ChatSummary(id=c.id, title=c.title, last_message_at=c.last_message_at, message_count=len(c.messages))
        for c in chats
    ])


def get_chat(db: Session, actor: CurrentUser, chat_id: uuid.UUID) -> ChatResponse:
    return _to_response(_get_own_chat(db, actor, chat_id))


def send_message(db: Session, actor: CurrentUser, chat_id: uuid.UUID, data: MessageCreate) -> MessageExchangeResponse:
    """
    Ajoute le message de l'élève, interroge le tuteur puis ajoute sa réponse.
    Le message de l'élève est enregistré avant l'appel : il reste en place
    même si l'appel dépasse le délai.
    """
    chat = _get_own_chat(db, actor, chat_id)
    user_message = chat.append_message("user", data.content)
    db.commit()

    school_class = db.get(SchoolClass, actor.student_class_id) if actor.student_class_id else None
    school = db.get(School, actor.school_id) if actor.school_id else None
    system_prompt = ai_client.build_system_prompt(
        actor.name,
        class_name=school_class.name if school_class else None,
        grade=school_class.grade if school_class else None,
        school_name=school.name if school else None,
    )

    try:
        reply = ai_client.complete(ai_client.prepare_messages(chat.messages, system_prompt))
    except UpstreamTimeoutError:
        logger.warning("Tuteur IA hors délai pour la conversation %s", chat_id)
        raise

    assistant_message = chat.append_message("assistant", reply)
    db.commit()
    logger.info("Échange enregistré dans la conversation %s", chat_id)

    return MessageExchangeResponse(
        user_message=_message_response(user_message),
        assistant_message=_message_response(assistant_message),
    )


def rename_chat(db: Session, actor: CurrentUser, chat_id: uuid.UUID, data: ChatRename) -> ChatResponse:
    chat = _get_own_chat(db, actor, chat_id)
    chat.title = data.title
    db.commit()
    db.refresh(chat)
    return _to_response(chat)


def delete_chat(db: Session, actor: CurrentUser, chat_id: uuid.UUID) -> None:
    """Suppression logique : la conversation est désactivée, pas effacée."""
    chat = _get_own_chat(db, actor, chat_id, include_inactive=True)
    chat.is_active = False
    db.commit()
    logger.info("Conversation %s désactivée", chat_id)


def _get_own_chat(db: Session, actor: CurrentUser, chat_id: uuid.UUID, include_inactive: bool = False) -> Chat:
    chat: Optional[Chat] = db.get(Chat, chat_id)
    if chat is None or chat.student_id != actor.id or not (chat.is_active or include_inactive):
        raise NotFoundError("Conversation introuvable.")
    return chat


def _message_response(message) -> ChatMessageResponse:
    return ChatMessageResponse(role=message.role, content=message.content, timestamp=message.timestamp)


def _to_response(chat: Chat) -> ChatResponse:
    return ChatResponse(
        id=chat.id,
        title=chat.title,
        is_active=chat.is_active,
        last_message_at=chat.last_message_at,
        created_at=chat.created_at,
        messages=[_message_response(m) for m in chat.messages],
    )
