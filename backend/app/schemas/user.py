"""
Schémas Pydantic pour les utilisateurs.
"""

import re
import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import field_validator

from app.schemas.common import CamelModel
from app.services.access_rules import Role, TeachingAssignment

EMAIL_REGEX = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


def _check_email(v: str) -> str:
    v = v.strip().lower()
    if not EMAIL_REGEX.match(v):
        raise ValueError("Adresse email invalide.")
    return v


class UserCreate(CamelModel):
    name: str
    email: str
    password: str
    role: Role
    student_class_id: Optional[uuid.UUID] = None
    school_id: Optional[uuid.UUID] = None  # superadmin uniquement

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom ne peut pas être vide.")
        return v.strip()

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères.")
        return v


class UserUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le nom ne peut pas être vide.")
        return v.strip() if v else v

    @field_validator("email")
    @classmethod
    def email_valid(cls, v: Optional[str]) -> Optional[str]:
        return _check_email(v) if v is not None else v


class PasswordChange(CamelModel):
    current_password: Optional[str] = None
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_length(cls, v: str) -> str:
        if len(v) < MIN_PASSWORD_LENGTH:
            raise ValueError(f"Le mot de passe doit contenir au moins {MIN_PASSWORD_LENGTH} caractères.")
        return v


class UserResponse(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    role: str
    school_id: Optional[uuid.UUID] = None
    student_class_id: Optional[uuid.UUID] = None
    teaching_classes: List[TeachingAssignment] = []
    created_at: Optional[datetime] = None


class UserListResponse(CamelModel):
    users: List[UserResponse]
    pagination: Dict[str, int]
