"""
Router pour les utilisateurs : connexion, profil, gestion des comptes.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_role
from app.schemas.auth import CurrentUser, LoginRequest, LoginResponse
from app.schemas.common import MessageResponse, PageParams
from app.schemas.user import PasswordChange, UserCreate, UserListResponse, UserResponse, UserUpdate
from app.services import user_service
from app.services.access_rules import Role

router = APIRouter(prefix="/api/users", tags=["Utilisateurs"])


@router.post("/login", response_model=LoginResponse, summary="Se connecter")
def login(data: LoginRequest, db: Session = Depends(get_db)):
    """Retourne un jeton JWT et le profil de l'utilisateur."""
    return user_service.login(db, data)


@router.get("/profile", response_model=UserResponse, summary="Mon profil")
def get_profile(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return user_service.get_profile(db, current_user)


@router.post("", response_model=UserResponse, status_code=201, summary="Créer un compte")
def create_user(
    data: UserCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    """Superadmin → admin ; admin → enseignant ou élève."""
    return user_service.create_user(db, current_user, data)


@router.get("", response_model=UserListResponse, summary="Lister les comptes")
def list_users(
    role: Optional[Role] = Query(None, description="Filtrer par rôle"),
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.TEACHER)),
):
    """Admin : comptes de l'établissement. Enseignant : élèves de l'établissement."""
    return user_service.list_users(db, current_user, page, role)


@router.get("/{user_id}", response_model=UserResponse, summary="Détail d'un compte")
def get_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    return user_service.get_user(db, current_user, user_id)


@router.put("/{user_id}", response_model=UserResponse, summary="Modifier un compte")
def update_user(
    user_id: uuid.UUID,
    data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    return user_service.update_user(db, current_user, user_id, data)


@router.delete("/{user_id}", response_model=MessageResponse, summary="Supprimer un compte")
def delete_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    """Refusé pour le dernier admin ; nettoie les affectations de classe."""
    user_service.delete_user(db, current_user, user_id)
    return MessageResponse(message="Compte supprimé.")


@router.put("/{user_id}/password", response_model=MessageResponse, summary="Changer le mot de passe")
def change_password(
    user_id: uuid.UUID,
    data: PasswordChange,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Soi-même (mot de passe actuel requis) ou un admin pour un compte de son établissement."""
    user_service.change_password(db, current_user, user_id, data)
    return MessageResponse(message="Mot de passe modifié.")
