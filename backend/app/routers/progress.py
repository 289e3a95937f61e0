"""
Router pour le suivi de progression.
"""

import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_exact_role, require_role
from app.schemas.auth import CurrentUser
from app.schemas.common import MessageResponse
from app.schemas.progress import ClassProgressResponse, ExerciseAnalyticsResponse, StudentOverviewResponse
from app.services import progress_service
from app.services.access_rules import Role

router = APIRouter(prefix="/api/progress", tags=["Progression"])


@router.get("/student/{student_id}", response_model=StudentOverviewResponse, summary="Progression d'un élève")
def get_student_overview(
    student_id: uuid.UUID,
    subject_id: Optional[uuid.UUID] = Query(None, alias="subjectId"),
    class_id: Optional[uuid.UUID] = Query(None, alias="classId"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return progress_service.get_student_overview(
        db, current_user, student_id, subject_id, class_id, date_from, date_to
    )


@router.get("/class/{class_id}", response_model=ClassProgressResponse, summary="Progression d'une classe")
def get_class_progress(
    class_id: uuid.UUID,
    subject_id: Optional[uuid.UUID] = Query(None, alias="subjectId"),
    exercise_id: Optional[uuid.UUID] = Query(None, alias="exerciseId"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.TEACHER)),
):
    return progress_service.get_class_progress(
        db, current_user, class_id, subject_id, exercise_id, date_from, date_to
    )


@router.get(
    "/exercise/{exercise_id}/analytics",
    response_model=ExerciseAnalyticsResponse,
    summary="Analyse d'un exercice",
)
def get_exercise_analytics(
    exercise_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_exact_role(Role.TEACHER)),
):
    return progress_service.get_exercise_analytics(db, current_user, exercise_id)


@router.delete("/{progress_id}", response_model=MessageResponse, summary="Supprimer une tentative")
def delete_progress(
    progress_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    progress_service.delete_progress(db, current_user, progress_id)
    return MessageResponse(message="Tentative supprimée.")
