"""
Configuration partagée pour tous les tests.
Override la dépendance get_db pour éviter toute connexion réelle à PostgreSQL,
et get_current_user pour simuler l'appelant sans jeton.
"""

import uuid

import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from app.config import settings
from app.database import get_db
from app.dependencies import get_current_user
from app.main import app
from app.schemas.auth import CurrentUser
from app.services.access_rules import Role, TeachingAssignment

SCHOOL_ID = uuid.uuid4()
CLASS_ID = uuid.uuid4()
SUBJECT_ID = uuid.uuid4()


def make_user(role: Role = Role.STUDENT, **kwargs) -> CurrentUser:
    """Contexte d'appelant ; un enseignant enseigne SUBJECT_ID dans CLASS_ID par défaut."""
    teaching = []
    if role == Role.TEACHER:
        teaching = [TeachingAssignment(class_id=CLASS_ID, subject_ids=[SUBJECT_ID])]
    return CurrentUser(
        id=kwargs.get("id", uuid.uuid4()),
        role=role,
        name=kwargs.get("name", "Alice Martin"),
        email=kwargs.get("email", "alice@ecole.be"),
        school_id=kwargs.get("school_id", None if role == Role.SUPERADMIN else SCHOOL_ID),
        student_class_id=kwargs.get("student_class_id", CLASS_ID if role == Role.STUDENT else None),
        teaching_classes=kwargs.get("teaching_classes", teaching),
    )


@pytest.fixture
def client(tmp_path, monkeypatch):
    """Client HTTP de test avec la BDD mockée."""
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))
    mock_db = MagicMock()
    app.dependency_overrides[get_db] = lambda: mock_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """Authentifie les requêtes suivantes avec le rôle donné ; renvoie l'utilisateur simulé."""

    def _login(role: Role = Role.STUDENT, **kwargs) -> CurrentUser:
        user = make_user(role, **kwargs)
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _login
