"""
Schémas Pydantic pour le formulaire de contact.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import field_validator

from app.schemas.common import CamelModel
from app.schemas.user import EMAIL_REGEX


class ContactCreate(CamelModel):
    name: str
    email: str
    phone: str
    message: str

    @field_validator("name", "message")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Tous les champs sont obligatoires.")
        return v.strip()

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_REGEX.match(v):
            raise ValueError("Adresse email invalide.")
        return v

    @field_validator("phone")
    @classmethod
    def phone_numeric(cls, v: str) -> str:
        v = v.strip()
        if not v.isdigit():
            raise ValueError("Le numéro de téléphone ne doit contenir que des chiffres.")
        return v


class ContactUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    message: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def phone_numeric(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip().isdigit():
            raise ValueError("Le numéro de téléphone ne doit contenir que des chiffres.")
        return v.strip() if v else v


class ContactResponse(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    phone: str
    message: str
    created_at: Optional[datetime] = None


class ContactListResponse(CamelModel):
    contacts: List[ContactResponse]
    pagination: Dict[str, int]
