"""
Router pour la gestion des classes.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_role
from app.schemas.auth import CurrentUser
from app.schemas.common import MessageResponse, PageParams
from app.schemas.school_class import (
    ClassCreate,
    ClassListResponse,
    ClassResponse,
    ClassStudentsResponse,
    ClassUpdate,
    TeacherAssign,
    TeacherSubjects,
)
from app.services import class_service
from app.services.access_rules import Role

router = APIRouter(prefix="/api/classes", tags=["Classes"])


@router.post("", response_model=ClassResponse, status_code=201, summary="Créer une classe")
def create_class(
    data: ClassCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    return class_service.create_class(db, current_user, data)


@router.get("", response_model=ClassListResponse, summary="Lister les classes")
def list_classes(
    grade: Optional[str] = Query(None),
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Admin : toutes ; enseignant : classes enseignées ; élève : sa classe."""
    return class_service.get_classes(db, current_user, page, grade, academic_year)


@router.get("/{class_id}", response_model=ClassResponse, summary="Détail d'une classe")
def get_class(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return class_service.get_class(db, current_user, class_id)


@router.put("/{class_id}", response_model=ClassResponse, summary="Modifier une classe")
def update_class(
    class_id: uuid.UUID,
    data: ClassUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    return class_service.update_class(db, current_user, class_id, data)


@router.delete("/{class_id}", response_model=MessageResponse, summary="Supprimer une classe")
def delete_class(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    """Supprime aussi exercices, tentatives et affectations ; les élèves sont détachés."""
    class_service.delete_class(db, current_user, class_id)
    return MessageResponse(message="Classe supprimée.")


# --- Gestion des élèves ---

@router.get("/{class_id}/students", response_model=ClassStudentsResponse, summary="Élèves d'une classe")
def list_students(
    class_id: uuid.UUID,
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.TEACHER)),
):
    return class_service.get_class_students(db, current_user, class_id, page)


@router.post("/{class_id}/students/{student_id}", response_model=ClassResponse, summary="Ajouter un élève")
def add_student(
    class_id: uuid.UUID,
    student_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    return class_service.add_student(db, current_user, class_id, student_id)


@router.delete("/{class_id}/students/{student_id}", response_model=MessageResponse, summary="Retirer un élève")
def remove_student(
    class_id: uuid.UUID,
    student_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    class_service.remove_student(db, current_user, class_id, student_id)
    return MessageResponse(message="Élève retiré de la classe.")


# --- Gestion des enseignants ---

@router.get("/{class_id}/teachers", response_model=List[TeacherSubjects], summary="Enseignants d'une classe")
def list_teachers(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return class_service.get_class_teachers(db, current_user, class_id)


@router.post("/{class_id}/teachers", response_model=List[TeacherSubjects], summary="Affecter un enseignant")
def assign_teacher(
    class_id: uuid.UUID,
    data: TeacherAssign,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    """Les matières s'ajoutent à celles que l'enseignant a déjà dans la classe."""
    return class_service.assign_teacher(db, current_user, class_id, data)


@router.delete("/{class_id}/teachers/{teacher_id}", response_model=MessageResponse, summary="Retirer un enseignant")
def remove_teacher(
    class_id: uuid.UUID,
    teacher_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    class_service.remove_teacher(db, current_user, class_id, teacher_id)
    return MessageResponse(message="Enseignant retiré de la classe.")
