"""
Schémas Pydantic pour l'établissement.
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import field_validator

from app.schemas.common import CamelModel
from app.schemas.user import UserCreate, UserResponse
from app.services.access_rules import Role

MAX_SCHOOL_NAME_LENGTH = 100


def _check_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Le nom de l'établissement ne peut pas être vide.")
    if len(v) > MAX_SCHOOL_NAME_LENGTH:
        raise ValueError(f"Le nom de l'établissement ne peut pas dépasser {MAX_SCHOOL_NAME_LENGTH} caractères.")
    return v


class AdminCreate(UserCreate):
    """Premier administrateur, validé comme un utilisateur ordinaire."""
    role: Literal[Role.ADMIN] = Role.ADMIN


class SchoolCreate(CamelModel):
    name: str
    admin: AdminCreate

    @field_validator("name")
    @classmethod
    def name_valid(cls, v: str) -> str:
        return _check_name(v)


class SchoolRename(CamelModel):
    name: str

    @field_validator("name")
    @classmethod
    def name_valid(cls, v: str) -> str:
        return _check_name(v)


class SchoolAccessToggle(CamelModel):
    is_active: bool
    blocked_reason: Optional[str] = None


class SchoolStatistics(CamelModel):
    total_teachers: int
    total_students: int
    total_classes: int


class SchoolResponse(CamelModel):
    id: uuid.UUID
    name: str
    admin_id: Optional[uuid.UUID] = None
    is_active: bool
    blocked_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    statistics: Optional[SchoolStatistics] = None


class SchoolCreateResponse(CamelModel):
    school: SchoolResponse
    admin: UserResponse
