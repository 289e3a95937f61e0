"""
Schémas Pydantic pour l'authentification.
"""

from pydantic import BaseModel, field_validator

from app.schemas.user import UserResponse
from app.services.access_rules import Actor


class CurrentUser(Actor):
    """Utilisateur authentifié et son contexte de tenant, construit à chaque requête."""
    name: str
    email: str


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class LoginResponse(BaseModel):
    token: str
    user: UserResponse
