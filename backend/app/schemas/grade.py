"""
Schémas Pydantic pour les notes et bulletins.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import Field, field_validator

from app.exceptions import ValidationError
from app.schemas.common import CamelModel
from app.services.grading import SubjectAverage, validate_coefficient, validate_grade_value

ExamType = Literal["controle", "devoir", "examen", "test", "oral", "tp", "autre"]
Trimester = Literal["1er Trimestre", "2ème Trimestre", "3ème Trimestre"]


def _grade_value(v: float) -> float:
    try:
        validate_grade_value(v)
    except ValidationError as e:
        raise ValueError(e.message)
    return v


class GradeCreate(CamelModel):
    student_id: uuid.UUID
    class_id: uuid.UUID
    subject_id: uuid.UUID
    exam_name: str
    exam_type: ExamType
    grade: float
    coefficient: float = 1
    trimester: Trimester
    academic_year: Optional[str] = None
    exam_date: Optional[datetime] = None
    comments: Optional[str] = Field(None, max_length=500)

    @field_validator("exam_name")
    @classmethod
    def exam_name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le nom de l'évaluation ne peut pas être vide.")
        return v.strip()

    @field_validator("grade")
    @classmethod
    def grade_valid(cls, v: float) -> float:
        return _grade_value(v)

    @field_validator("coefficient")
    @classmethod
    def coefficient_valid(cls, v: float) -> float:
        try:
            validate_coefficient(v)
        except ValidationError as e:
            raise ValueError(e.message)
        return v


class GradeUpdate(CamelModel):
    """Seules la note et l'appréciation libre sont modifiables."""
    grade: Optional[float] = None
    comments: Optional[str] = Field(None, max_length=500)

    @field_validator("grade")
    @classmethod
    def grade_valid(cls, v: Optional[float]) -> Optional[float]:
        return _grade_value(v) if v is not None else v


class GradeResponse(CamelModel):
    id: uuid.UUID
    student_id: uuid.UUID
    class_id: uuid.UUID
    subject_id: uuid.UUID
    subject_name: Optional[str] = None
    teacher_id: uuid.UUID
    exam_name: str
    exam_type: str
    grade: float
    coefficient: float
    exam_date: Optional[datetime] = None
    trimester: str
    academic_year: str
    comments: Optional[str] = None
    appreciation: Optional[str] = None
    created_at: Optional[datetime] = None


class GradeStatistics(CamelModel):
    overall_average: float
    overall_appreciation: Optional[str] = None
    total_grades: int
    subject_averages: Dict[str, SubjectAverage]


class StudentGradesResponse(CamelModel):
    grades: List[GradeResponse]
    statistics: GradeStatistics


class ClassGradesResponse(CamelModel):
    grades: List[GradeResponse]
    total_grades: int


class ReportCardSubject(CamelModel):
    subject_id: uuid.UUID
    subject_name: str
    average: float
    appreciation: str
    grade_count: int
    total_coefficient: float
    grades: List[GradeResponse]


class ReportCardResponse(CamelModel):
    student_id: uuid.UUID
    student_name: str
    class_id: Optional[uuid.UUID] = None
    academic_year: str
    trimester: Optional[str] = None
    subjects: List[ReportCardSubject]
    overall_average: float
    overall_appreciation: Optional[str] = None
    total_grades: int
