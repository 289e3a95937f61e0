"""
Router pour les notes et bulletins.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_exact_role, require_role
from app.schemas.auth import CurrentUser
from app.schemas.common import MessageResponse
from app.schemas.grade import (
    ClassGradesResponse,
    ExamType,
    GradeCreate,
    GradeResponse,
    GradeUpdate,
    ReportCardResponse,
    StudentGradesResponse,
    Trimester,
)
from app.services import grade_service
from app.services.access_rules import Role

router = APIRouter(prefix="/api/grades", tags=["Notes"])


@router.post("", response_model=GradeResponse, status_code=201, summary="Saisir une note")
def create_grade(
    data: GradeCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_exact_role(Role.TEACHER)),
):
    """Note sur 20 par demi-points, coefficient entre 0.1 et 5."""
    return grade_service.create_grade(db, current_user, data)


@router.get("/student/{student_id}", response_model=StudentGradesResponse, summary="Notes d'un élève")
def get_student_grades(
    student_id: uuid.UUID,
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    trimester: Optional[Trimester] = Query(None),
    subject_id: Optional[uuid.UUID] = Query(None, alias="subjectId"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return grade_service.get_student_grades(db, current_user, student_id, academic_year, trimester, subject_id)


@router.get("/student/{student_id}/report", response_model=ReportCardResponse, summary="Bulletin d'un élève")
def get_report_card(
    student_id: uuid.UUID,
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    trimester: Optional[Trimester] = Query(None),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return grade_service.get_report_card(db, current_user, student_id, academic_year, trimester)


@router.get("/class/{class_id}", response_model=ClassGradesResponse, summary="Notes d'une classe")
def get_class_grades(
    class_id: uuid.UUID,
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    trimester: Optional[Trimester] = Query(None),
    subject_id: Optional[uuid.UUID] = Query(None, alias="subjectId"),
    exam_type: Optional[ExamType] = Query(None, alias="examType"),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.TEACHER)),
):
    return grade_service.get_class_grades(
        db, current_user, class_id, academic_year, trimester, subject_id, exam_type
    )


@router.put("/{grade_id}", response_model=GradeResponse, summary="Modifier une note")
def update_grade(
    grade_id: uuid.UUID,
    data: GradeUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_exact_role(Role.TEACHER)),
):
    return grade_service.update_grade(db, current_user, grade_id, data)


@router.delete("/{grade_id}", response_model=MessageResponse, summary="Supprimer une note")
def delete_grade(
    grade_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_exact_role(Role.TEACHER)),
):
    grade_service.delete_grade(db, current_user, grade_id)
    return MessageResponse(message="Note supprimée.")
