"""
Router pour le formulaire de contact.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import require_role
from app.schemas.auth import CurrentUser
from app.schemas.common import MessageResponse, PageParams
from app.schemas.contact import ContactCreate, ContactListResponse, ContactResponse, ContactUpdate
from app.services import contact_service
from app.services.access_rules import Role

router = APIRouter(prefix="/api/contacts", tags=["Contact"])


@router.post("", response_model=ContactResponse, status_code=201, summary="Envoyer un message")
def create_contact(data: ContactCreate, db: Session = Depends(get_db)):
    """Public : nom, email, téléphone (chiffres uniquement) et message obligatoires."""
    return contact_service.create_contact(db, data)


@router.get("", response_model=ContactListResponse, summary="Lister les messages")
def list_contacts(
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    return contact_service.get_contacts(db, page)


@router.get("/{contact_id}", response_model=ContactResponse, summary="Détail d'un message")
def get_contact(
    contact_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    return contact_service.get_contact(db, contact_id)


@router.put("/{contact_id}", response_model=ContactResponse, summary="Modifier un message")
def update_contact(
    contact_id: uuid.UUID,
    data: ContactUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    return contact_service.update_contact(db, contact_id, data)


@router.delete("/{contact_id}", response_model=MessageResponse, summary="Supprimer un message")
def delete_contact(
    contact_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    contact_service.delete_contact(db, contact_id)
    return MessageResponse(message="Message supprimé.")
