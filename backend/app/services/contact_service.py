"""
Service métier pour les messages du formulaire de contact public.
"""

import uuid
import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.exceptions import NotFoundError
from app.models.contact import Contact
from app.schemas.common import PageParams, pagination
from app.schemas.contact import ContactCreate, ContactListResponse, ContactResponse, ContactUpdate

logger = logging.getLogger(__name__)


def create_contact(db: Session, data: ContactCreate) -> ContactResponse:
    contact = Contact(name=data.name, email=data.email, phone=data.phone, message=data.message)
    db.add(contact)
    db.commit()
    db.refresh(contact)
    logger.info("Message de contact reçu de %s", contact.email)
    return _to_response(contact)


def get_contacts(db: Session, page: PageParams) -> ContactListResponse:
    total = db.execute(select(func.count()).select_from(Contact)).scalar() or 0
    contacts = db.execute(
        select(Contact).order_by(Contact.created_at.desc()).offset(page.offset).limit(page.limit)
    ).scalars().all()
    return ContactListResponse(
        contacts=[_to_response(c) for c in contacts],
        pagination=pagination(page.page, page.limit, total, "Contacts"),
    )


def get_contact(db: Session, contact_id: uuid.UUID) -> ContactResponse:
    return _to_response(_get_or_404(db, contact_id))


def update_contact(db: Session, contact_id: uuid.UUID, data: ContactUpdate) -> ContactResponse:
    contact = _get_or_404(db, contact_id)
    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(contact, field, value)
    db.commit()
    db.refresh(contact)
    return _to_response(contact)


def delete_contact(db: Session, contact_id: uuid.UUID) -> None:
    contact = _get_or_404(db, contact_id)
    db.delete(contact)
    db.commit()
    logger.info("Message de contact %s supprimé", contact_id)


def _get_or_404(db: Session, contact_id: uuid.UUID) -> Contact:
    contact = db.get(Contact, contact_id)
    if contact is None:
        raise NotFoundError("Message de contact introuvable.")
    return contact


def _to_response(contact: Contact) -> ContactResponse:
    return ContactResponse(
        id=contact.id,
        name=contact.name,
        email=contact.email,
        phone=contact.phone,
        message=contact.message,
        created_at=contact.created_at,
    )
