"""
Schémas Pydantic pour les classes et leurs affectations.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import field_validator

from app.schemas.common import CamelModel
from app.schemas.user import UserResponse


class ClassCreate(CamelModel):
    name: str
    grade: str
    academic_year: Optional[str] = None

    @field_validator("name", "grade")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom et le niveau de la classe sont obligatoires.")
        return v.strip()


class ClassUpdate(CamelModel):
    name: Optional[str] = None
    grade: Optional[str] = None
    academic_year: Optional[str] = None
    is_active: Optional[bool] = None

    @field_validator("name", "grade")
    @classmethod
    def not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le nom et le niveau de la classe ne peuvent pas être vides.")
        return v.strip() if v else v


class TeacherAssign(CamelModel):
    """Corps de requête pour affecter un enseignant à des matières d'une classe."""
    teacher_id: uuid.UUID
    subject_ids: List[uuid.UUID]

    @field_validator("subject_ids")
    @classmethod
    def not_empty(cls, v: List[uuid.UUID]) -> List[uuid.UUID]:
        if not v:
            raise ValueError("La liste des matières ne peut pas être vide.")
        return v


class TeacherSubjects(CamelModel):
    teacher_id: uuid.UUID
    teacher_name: str
    teacher_email: str
    subject_ids: List[uuid.UUID]
    subject_names: List[str] = []


class ClassStatistics(CamelModel):
    total_students: int
    total_teachers: int
    total_exercises: int


class ClassResponse(CamelModel):
    id: uuid.UUID
    name: str
    grade: str
    school_id: uuid.UUID
    academic_year: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    statistics: Optional[ClassStatistics] = None


class ClassListResponse(CamelModel):
    classes: List[ClassResponse]
    pagination: Dict[str, int]


class ClassStudentsResponse(CamelModel):
    students: List[UserResponse]
    pagination: Dict[str, int]
