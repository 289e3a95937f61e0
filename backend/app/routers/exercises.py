"""
Router pour les exercices et leurs soumissions.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_exact_role
from app.schemas.auth import CurrentUser
from app.schemas.common import MessageResponse, PageParams
from app.schemas.exercise import (
    Difficulty,
    ExerciseCreate,
    ExerciseDetailResponse,
    ExerciseListResponse,
    ExerciseResponse,
    ExerciseType,
    ExerciseUpdate,
    StudentExerciseListResponse,
    SubmissionRequest,
    SubmissionResponse,
)
from app.schemas.progress import ExerciseProgressResponse
from app.services import exercise_service
from app.services.access_rules import Role

router = APIRouter(prefix="/api/exercises", tags=["Exercices"])


@router.post("", response_model=ExerciseResponse, status_code=201, summary="Créer un exercice")
def create_exercise(
    data: ExerciseCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_exact_role(Role.TEACHER)),
):
    """L'enseignant doit enseigner la matière dans la classe ciblée."""
    return exercise_service.create_exercise(db, current_user, data)


@router.get("", response_model=ExerciseListResponse, summary="Lister les exercices")
def list_exercises(
    class_id: Optional[uuid.UUID] = Query(None, alias="classId"),
    subject_id: Optional[uuid.UUID] = Query(None, alias="subjectId"),
    exercise_type: Optional[ExerciseType] = Query(None, alias="type"),
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return exercise_service.get_exercises(db, current_user, page, class_id, subject_id, exercise_type)


@router.get(
    "/subject/{subject_id}",
    response_model=StudentExerciseListResponse,
    summary="Exercices d'une matière (élève)",
)
def list_by_subject(
    subject_id: uuid.UUID,
    difficulty: Optional[Difficulty] = Query(None),
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_exact_role(Role.STUDENT)),
):
    """Avec la dernière tentative, le statut et les tentatives restantes."""
    return exercise_service.get_exercises_by_subject(db, current_user, subject_id, page, difficulty)


@router.get("/{exercise_id}", response_model=ExerciseDetailResponse, summary="Détail d'un exercice")
def get_exercise(
    exercise_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return exercise_service.get_exercise(db, current_user, exercise_id)


@router.put("/{exercise_id}", response_model=ExerciseResponse, summary="Modifier un exercice")
def update_exercise(
    exercise_id: uuid.UUID,
    data: ExerciseUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_exact_role(Role.TEACHER)),
):
    return exercise_service.update_exercise(db, current_user, exercise_id, data)


@router.delete("/{exercise_id}", response_model=MessageResponse, summary="Supprimer un exercice")
def delete_exercise(
    exercise_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_exact_role(Role.TEACHER)),
):
    exercise_service.delete_exercise(db, current_user, exercise_id)
    return MessageResponse(message="Exercice supprimé.")


@router.post(
    "/{exercise_id}/submit",
    response_model=SubmissionResponse,
    status_code=201,
    summary="Soumettre ses réponses",
)
def submit_exercise(
    exercise_id: uuid.UUID,
    data: SubmissionRequest,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_exact_role(Role.STUDENT)),
):
    """Corrige la soumission ; refusée une fois la limite de tentatives atteinte."""
    return exercise_service.submit_exercise(db, current_user, exercise_id, data)


@router.get(
    "/{exercise_id}/progress",
    response_model=ExerciseProgressResponse,
    summary="Tentatives sur un exercice",
)
def get_exercise_progress(
    exercise_id: uuid.UUID,
    student_id: Optional[uuid.UUID] = Query(None, alias="studentId"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """L'élève voit ses tentatives ; enseignant et admin précisent studentId."""
    return exercise_service.get_exercise_progress(db, current_user, exercise_id, student_id)
