"""
Dépendances FastAPI d'authentification et de contrôle de rôle.
"""

import uuid

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.database import get_db
from app.exceptions import AuthenticationError, AuthorizationError
from app.schemas.auth import CurrentUser
from app.security import decode_access_token
from app.services import user_service
from app.services.access_rules import DENIAL_MESSAGES, Denial, Role, has_min_role

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """
    Décode le jeton Bearer et construit le contexte de l'appelant.
    401 si le jeton est absent, invalide ou si l'utilisateur n'existe plus ;
    403 si l'établissement est bloqué.
    """
    if credentials is None:
        raise AuthenticationError("Accès refusé. Aucun jeton fourni.", error="missing_token")

    subject = decode_access_token(credentials.credentials)
    try:
        user_id = uuid.UUID(subject) if subject else None
    except ValueError:
        user_id = None
    if user_id is None:
        raise AuthenticationError("Jeton invalide ou expiré.", error="invalid_token")

    return user_service.load_current_user(db, user_id)


def require_role(minimum: Role):
    """Autorise les rôles au moins aussi privilégiés que `minimum`."""

    def checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not has_min_role(current_user.role, minimum):
            raise AuthorizationError(
                DENIAL_MESSAGES[Denial.INSUFFICIENT_ROLE], error=Denial.INSUFFICIENT_ROLE.value
            )
        return current_user

    return checker


def require_exact_role(role: Role):
    """Réservé à un seul rôle (endpoints élève ou enseignant)."""

    def checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role != role:
            raise AuthorizationError(
                DENIAL_MESSAGES[Denial.INSUFFICIENT_ROLE], error=Denial.INSUFFICIENT_ROLE.value
            )
        return current_user

    return checker
