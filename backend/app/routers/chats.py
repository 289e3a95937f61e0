"""
Router pour les conversations avec le tuteur IA (élèves uniquement).
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import require_exact_role
from app.schemas.auth import CurrentUser
from app.schemas.chat import (
    ChatCreate,
    ChatListResponse,
    ChatRename,
    ChatResponse,
    MessageCreate,
    MessageExchangeResponse,
)
from app.schemas.common import MessageResponse
from app.services import chat_service
from app.services.access_rules import Role

router = APIRouter(prefix="/api/chats", tags=["Tuteur IA"])

student_only = require_exact_role(Role.STUDENT)


@router.post("", response_model=ChatResponse, status_code=201, summary="Nouvelle conversation")
def create_chat(
    data: ChatCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(student_only),
):
    return chat_service.create_chat(db, current_user, data)


@router.get("", response_model=ChatListResponse, summary="Mes conversations")
def list_chats(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(student_only),
):
    return chat_service.get_chats(db, current_user)


@router.get("/{chat_id}", response_model=ChatResponse, summary="Détail d'une conversation")
def get_chat(
    chat_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(student_only),
):
    return chat_service.get_chat(db, current_user, chat_id)


@router.post("/{chat_id}/message", response_model=MessageExchangeResponse, summary="Envoyer un message")
def send_message(
    chat_id: uuid.UUID,
    data: MessageCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(student_only),
):
    """408 si le tuteur ne répond pas à temps ; le message de l'élève reste enregistré."""
    return chat_service.send_message(db, current_user, chat_id, data)


@router.patch("/{chat_id}/title", response_model=ChatResponse, summary="Renommer une conversation")
def rename_chat(
    chat_id: uuid.UUID,
    data: ChatRename,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(student_only),
):
    return chat_service.rename_chat(db, current_user, chat_id, data)


@router.delete("/{chat_id}", response_model=MessageResponse, summary="Supprimer une conversation")
def delete_chat(
    chat_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(student_only),
):
    chat_service.delete_chat(db, current_user, chat_id)
    return MessageResponse(message="Conversation supprimée.")
