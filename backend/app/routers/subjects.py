"""
Router pour les matières.
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_role
from app.schemas.auth import CurrentUser
from app.schemas.common import MessageResponse
from app.schemas.subject import SubjectCreate, SubjectDetailResponse, SubjectResponse, SubjectUpdate
from app.services import subject_service
from app.services.access_rules import Role

router = APIRouter(prefix="/api/subjects", tags=["Matières"])


@router.post("", response_model=SubjectResponse, status_code=201, summary="Créer une matière")
def create_subject(
    data: SubjectCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    """Le nom est unique, sans tenir compte de la casse."""
    return subject_service.create_subject(db, data)


@router.get("", response_model=List[SubjectResponse], summary="Lister les matières")
def list_subjects(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return subject_service.get_subjects(db)


@router.get("/{subject_id}", response_model=SubjectDetailResponse, summary="Détail d'une matière")
def get_subject(
    subject_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return subject_service.get_subject(db, current_user, subject_id)


@router.put("/{subject_id}", response_model=SubjectResponse, summary="Modifier une matière")
def update_subject(
    subject_id: uuid.UUID,
    data: SubjectUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    return subject_service.update_subject(db, subject_id, data)


@router.delete("/{subject_id}", response_model=MessageResponse, summary="Supprimer une matière")
def delete_subject(
    subject_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    """Refusé tant qu'une classe utilise la matière."""
    subject_service.delete_subject(db, subject_id)
    return MessageResponse(message="Matière supprimée.")
