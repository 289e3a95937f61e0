"""
Tests d'intégration API : authentification, rôles, comptes et format des erreurs.
"""

import uuid
from datetime import datetime
from unittest.mock import patch

from fastapi.testclient import TestClient

from app.exceptions import AuthorizationError, ConflictError, NotFoundError
from app.main import app
from app.schemas.auth import LoginResponse
from app.schemas.user import UserListResponse, UserResponse
from app.security import create_access_token
from app.services.access_rules import Role
from conftest import SCHOOL_ID, make_user


# --- Helper ---

def make_user_response(**kwargs) -> UserResponse:
    return UserResponse(
        id=kwargs.get("id", uuid.uuid4()),
        name=kwargs.get("name", "Alice Martin"),
        email=kwargs.get("email", "alice@ecole.be"),
        role=kwargs.get("role", "student"),
        school_id=SCHOOL_ID,
        created_at=datetime.now(),
    )


# ============================================================
# Jeton
# ============================================================

def test_sans_jeton_401(client):
    response = client.get("/api/users/profile")
    assert response.status_code == 401
    assert response.json()["error"] == "missing_token"


def test_jeton_invalide_401(client):
    response = client.get("/api/users/profile", headers={"Authorization": "Bearer pas-un-jwt"})
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_token"


def test_jeton_valide(client):
    user = make_user(Role.STUDENT)
    token = create_access_token(str(user.id))
    with patch("app.dependencies.user_service.load_current_user", return_value=user) as mock_load, \
         patch("app.routers.users.user_service.get_profile", return_value=make_user_response(id=user.id)):
        response = client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["id"] == str(user.id)
    assert mock_load.call_args[0][1] == user.id


def test_etablissement_bloque_403(client):
    token = create_access_token(str(uuid.uuid4()))
    with patch("app.dependencies.user_service.load_current_user") as mock_load:
        mock_load.side_effect = AuthorizationError("Bloqué", error="school_blocked")
        response = client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403
    assert response.json()["error"] == "school_blocked"


# ============================================================
# POST /api/users/login
# ============================================================

def test_login_succes(client):
    with patch("app.routers.users.user_service.login") as mock:
        mock.return_value = LoginResponse(token="abc", user=make_user_response())
        response = client.post("/api/users/login", json={"email": "alice@ecole.be", "password": "secret1"})

    assert response.status_code == 200
    assert response.json()["token"] == "abc"
    assert "schoolId" in response.json()["user"]


def test_login_body_manquant(client):
    """Champs manquants → 400 avec le détail par champ."""
    response = client.post("/api/users/login", json={})
    assert response.status_code == 400
    body = response.json()
    assert body["message"]
    assert isinstance(body["error"], list)
    assert any("email" in err["field"] for err in body["error"])


# ============================================================
# POST /api/users
# ============================================================

def test_create_user_eleve_refuse(client, login_as):
    login_as(Role.STUDENT)
    response = client.post("/api/users", json={
        "name": "Bob", "email": "bob@ecole.be", "password": "secret1", "role": "student",
    })
    assert response.status_code == 403
    assert response.json()["error"] == "insufficient_role"


def test_create_user_succes(client, login_as):
    login_as(Role.ADMIN)
    with patch("app.routers.users.user_service.create_user") as mock:
        mock.return_value = make_user_response(role="teacher")
        response = client.post("/api/users", json={
            "name": "Claire", "email": "claire@ecole.be", "password": "secret1", "role": "teacher",
        })
    assert response.status_code == 201
    assert response.json()["role"] == "teacher"


def test_create_user_email_pris(client, login_as):
    login_as(Role.ADMIN)
    with patch("app.routers.users.user_service.create_user") as mock:
        mock.side_effect = ConflictError("Cet email est déjà utilisé.", error="email_taken")
        response = client.post("/api/users", json={
            "name": "Claire", "email": "claire@ecole.be", "password": "secret1", "role": "teacher",
        })
    assert response.status_code == 400
    assert response.json() == {"message": "Cet email est déjà utilisé.", "error": "email_taken"}


def test_create_user_mot_de_passe_trop_court(client, login_as):
    login_as(Role.ADMIN)
    response = client.post("/api/users", json={
        "name": "Claire", "email": "claire@ecole.be", "password": "123", "role": "teacher",
    })
    assert response.status_code == 400


# ============================================================
# GET / DELETE /api/users
# ============================================================

def test_list_users_pagination(client, login_as):
    login_as(Role.TEACHER)
    with patch("app.routers.users.user_service.list_users") as mock:
        mock.return_value = UserListResponse(
            users=[make_user_response()],
            pagination={"currentPage": 1, "totalPages": 1, "totalUsers": 1},
        )
        response = client.get("/api/users?page=1&limit=10")

    assert response.status_code == 200
    assert response.json()["pagination"]["totalUsers"] == 1
    page = mock.call_args[0][2]
    assert page.limit == 10


def test_list_users_limite_hors_bornes(client, login_as):
    login_as(Role.ADMIN)
    response = client.get("/api/users?limit=500")
    assert response.status_code == 400


def test_get_user_autre_etablissement_404(client, login_as):
    login_as(Role.ADMIN)
    with patch("app.routers.users.user_service.get_user") as mock:
        mock.side_effect = NotFoundError("Ressource introuvable.", error="other_school")
        response = client.get(f"/api/users/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["error"] == "other_school"


def test_delete_user_succes(client, login_as):
    login_as(Role.ADMIN)
    with patch("app.routers.users.user_service.delete_user") as mock:
        response = client.delete(f"/api/users/{uuid.uuid4()}")
    assert response.status_code == 200
    assert "message" in response.json()
    mock.assert_called_once()


def test_erreur_interne_500(client, login_as):
    login_as(Role.ADMIN)
    with patch("app.routers.users.user_service.get_user", side_effect=RuntimeError("boom")):
        with TestClient(app, raise_server_exceptions=False) as raw_client:
            response = raw_client.get(f"/api/users/{uuid.uuid4()}")
    assert response.status_code == 500
    assert response.json() == {"message": "Une erreur interne est survenue."}
