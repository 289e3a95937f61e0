"""
Router pour l'établissement.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_exact_role, require_role
from app.schemas.auth import CurrentUser
from app.schemas.school import (
    SchoolAccessToggle,
    SchoolCreate,
    SchoolCreateResponse,
    SchoolRename,
    SchoolResponse,
)
from app.services import school_service
from app.services.access_rules import Role

router = APIRouter(prefix="/api/schools", tags=["Établissement"])


@router.post("", response_model=SchoolCreateResponse, status_code=201, summary="Créer l'établissement")
def create_school(
    data: SchoolCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_exact_role(Role.SUPERADMIN)),
):
    """Crée l'unique établissement et son premier administrateur."""
    return school_service.create_school(db, current_user, data)


@router.get("", response_model=SchoolResponse, summary="Mon établissement")
def get_school(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return school_service.get_school(db, current_user)


@router.put("/access", response_model=SchoolResponse, summary="Bloquer / débloquer l'accès")
def toggle_access(
    data: SchoolAccessToggle,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_exact_role(Role.SUPERADMIN)),
):
    return school_service.toggle_access(db, current_user, data)


@router.put("/name", response_model=SchoolResponse, summary="Renommer l'établissement")
def rename_school(
    data: SchoolRename,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    return school_service.rename_school(db, current_user, data)
