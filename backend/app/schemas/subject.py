"""
Schémas Pydantic pour les matières.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import field_validator

from app.schemas.common import CamelModel


class SubjectCreate(CamelModel):
    name: str
    description: str
    image_path: Optional[str] = None

    @field_validator("name", "description")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom et la description sont obligatoires.")
        return v.strip()


class SubjectUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    image_path: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le nom de la matière ne peut pas être vide.")
        return v.strip() if v else v


class ClassRef(CamelModel):
    id: uuid.UUID
    name: str
    grade: str


class SubjectResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: str
    image_path: Optional[str] = None
    created_at: Optional[datetime] = None


class SubjectDetailResponse(CamelModel):
    subject: SubjectResponse
    classes_using_subject: List[ClassRef]
