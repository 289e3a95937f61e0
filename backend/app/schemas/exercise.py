"""
Schémas Pydantic pour les exercices (QCM et textes à trous) et leurs soumissions.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from app.schemas.common import CamelModel
from app.services.scoring import FillBlankAnswerResult, QcmAnswerResult

ExerciseType = Literal["qcm", "fill_blanks"]
Difficulty = Literal["easy", "medium", "hard"]


# --- Questions ---

class QcmOptionIn(CamelModel):
    text: str
    is_correct: bool = False


class QcmQuestionIn(CamelModel):
    question_text: str
    options: List[QcmOptionIn]
    points: float = Field(1, gt=0)
    explanation: Optional[str] = None

    @field_validator("options")
    @classmethod
    def options_valid(cls, v: List[QcmOptionIn]) -> List[QcmOptionIn]:
        if len(v) < 2:
            raise ValueError("Une question QCM doit proposer au moins deux options.")
        if not any(opt.is_correct for opt in v):
            raise ValueError("Une question QCM doit avoir au moins une option correcte.")
        return v


class BlankIn(CamelModel):
    position: int = Field(ge=0)
    correct_answer: str

    @field_validator("correct_answer")
    @classmethod
    def answer_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("La réponse attendue ne peut pas être vide.")
        return v


class FillBlankQuestionIn(CamelModel):
    sentence: str
    blanks: List[BlankIn]
    points: float = Field(1, gt=0)
    hint: Optional[str] = None

    @field_validator("blanks")
    @classmethod
    def blanks_not_empty(cls, v: List[BlankIn]) -> List[BlankIn]:
        if not v:
            raise ValueError("Une phrase à trous doit contenir au moins un trou.")
        return v


class ExerciseMetadata(CamelModel):
    max_attempts: int = Field(3, ge=1, le=20)
    time_limit: Optional[int] = Field(None, ge=1, description="Minutes")
    instructions: Optional[str] = None


# --- Création / modification ---

class ExerciseCreate(CamelModel):
    title: str
    type: ExerciseType
    subject_id: uuid.UUID
    class_id: uuid.UUID
    difficulty: Difficulty = "medium"
    qcm_questions: List[QcmQuestionIn] = []
    fill_blank_questions: List[FillBlankQuestionIn] = []
    metadata: ExerciseMetadata = ExerciseMetadata()
    tags: List[str] = []
    due_date: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre ne peut pas être vide.")
        return v.strip()

    @model_validator(mode="after")
    def questions_match_type(self):
        if self.type == "qcm" and not self.qcm_questions:
            raise ValueError("Un exercice QCM doit contenir au moins une question.")
        if self.type == "fill_blanks" and not self.fill_blank_questions:
            raise ValueError("Un exercice à trous doit contenir au moins une question.")
        return self


class ExerciseUpdate(CamelModel):
    """Classe, matière, type et créateur ne sont pas modifiables."""
    title: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    qcm_questions: Optional[List[QcmQuestionIn]] = None
    fill_blank_questions: Optional[List[FillBlankQuestionIn]] = None
    metadata: Optional[ExerciseMetadata] = None
    tags: Optional[List[str]] = None
    due_date: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def title_not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le titre ne peut pas être vide.")
        return v.strip() if v else v


# --- Réponses ---

class QcmOptionOut(CamelModel):
    id: str
    text: str
    is_correct: Optional[bool] = None


class QcmQuestionOut(CamelModel):
    question_text: str
    options: List[QcmOptionOut]
    points: float
    explanation: Optional[str] = None


class BlankOut(CamelModel):
    position: int
    correct_answer: Optional[str] = None


class FillBlankQuestionOut(CamelModel):
    sentence: str
    blanks: List[BlankOut]
    points: float
    hint: Optional[str] = None


class ExerciseResponse(CamelModel):
    id: uuid.UUID
    title: str
    type: str
    subject_id: uuid.UUID
    class_id: uuid.UUID
    created_by: uuid.UUID
    difficulty: str
    is_active: bool
    qcm_questions: List[QcmQuestionOut] = []
    fill_blank_questions: List[FillBlankQuestionOut] = []
    total_points: float
    metadata: Dict[str, Any] = {}
    tags: List[str] = []
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LatestProgress(CamelModel):
    attempt_number: int
    score: float
    accuracy: int
    completed_at: Optional[datetime] = None
    status: Literal["passed", "failed"]


class ExerciseDetailResponse(CamelModel):
    exercise: ExerciseResponse
    student_progress: Optional[LatestProgress] = None


class ExerciseListResponse(CamelModel):
    exercises: List[ExerciseResponse]
    pagination: Dict[str, int]


class StudentExerciseItem(CamelModel):
    """Exercice vu par un élève, avec sa dernière tentative."""
    id: uuid.UUID
    title: str
    type: str
    difficulty: str
    total_points: float
    due_date: Optional[datetime] = None
    created_by: uuid.UUID
    created_at: Optional[datetime] = None
    student_progress: Optional[LatestProgress] = None
    status: Literal["completed", "pending"]
    remaining_attempts: int


class StudentExerciseListResponse(CamelModel):
    exercises: List[StudentExerciseItem]
    pagination: Dict[str, int]


# --- Soumission ---

class SubmissionRequest(CamelModel):
    """
    answers[i] : id d'option (QCM) ou {"blanks": [...]} / liste de réponses (trous).
    Les réponses invalides valent 0 point, elles ne sont pas rejetées ici.
    """
    answers: List[Any]
    time_spent: int = Field(0, ge=0)
    started_at: Optional[datetime] = None


class SubmissionResponse(CamelModel):
    progress_id: uuid.UUID
    total_points_earned: float
    max_possible_points: float
    accuracy_percentage: int
    attempt_number: int
    qcm_answers: List[QcmAnswerResult] = []
    fill_blank_answers: List[FillBlankAnswerResult] = []
