"""
Tests d'intégration API pour les classes, matières et l'établissement.
Testent les URLs, les codes HTTP, la validation et le format des réponses.
"""

import uuid
from datetime import datetime
from unittest.mock import patch

from app.exceptions import ConflictError, NotFoundError, ValidationError
from app.schemas.school_class import ClassResponse, ClassStatistics, TeacherSubjects
from app.services.access_rules import Role
from conftest import CLASS_ID, SCHOOL_ID, SUBJECT_ID


# --- Helper ---

def make_class_response(**kwargs) -> ClassResponse:
    return ClassResponse(
        id=kwargs.get("id", CLASS_ID),
        name=kwargs.get("name", "5ème B"),
        grade=kwargs.get("grade", "5ème"),
        school_id=SCHOOL_ID,
        academic_year=kwargs.get("academic_year", "2025"),
        is_active=True,
        created_at=datetime.now(),
        updated_at=datetime.now(),
        statistics=kwargs.get("statistics"),
    )


# ============================================================
# POST /api/classes
# ============================================================

def test_create_class_succes(client, login_as):
    """Création d'une classe valide → 201."""
    login_as(Role.ADMIN)
    with patch("app.routers.classes.class_service.create_class") as mock:
        mock.return_value = make_class_response(name="5ème B")
        response = client.post("/api/classes", json={"name": "5ème B", "grade": "5ème"})

    assert response.status_code == 201
    assert response.json()["name"] == "5ème B"
    assert response.json()["academicYear"] == "2025"


def test_create_class_nom_vide(client, login_as):
    """Nom vide → 400."""
    login_as(Role.ADMIN)
    response = client.post("/api/classes", json={"name": "   ", "grade": "5ème"})
    assert response.status_code == 400


def test_create_class_enseignant_refuse(client, login_as):
    login_as(Role.TEACHER)
    response = client.post("/api/classes", json={"name": "5ème B", "grade": "5ème"})
    assert response.status_code == 403


# ============================================================
# GET /api/classes
# ============================================================

def test_list_classes_succes(client, login_as):
    login_as(Role.TEACHER)
    with patch("app.routers.classes.class_service.get_classes") as mock:
        mock.return_value = {
            "classes": [make_class_response().model_dump()],
            "pagination": {"currentPage": 1, "totalPages": 1, "totalClasses": 1},
        }
        response = client.get("/api/classes?grade=5ème")

    assert response.status_code == 200
    assert response.json()["pagination"]["totalClasses"] == 1
    assert mock.call_args[0][3] == "5ème"


def test_get_class_avec_statistiques(client, login_as):
    login_as(Role.ADMIN)
    with patch("app.routers.classes.class_service.get_class") as mock:
        mock.return_value = make_class_response(
            statistics=ClassStatistics(total_students=24, total_teachers=5, total_exercises=12)
        )
        response = client.get(f"/api/classes/{CLASS_ID}")

    assert response.status_code == 200
    assert response.json()["statistics"]["totalStudents"] == 24


def test_get_class_introuvable(client, login_as):
    login_as(Role.ADMIN)
    with patch("app.routers.classes.class_service.get_class") as mock:
        mock.side_effect = NotFoundError("Classe introuvable.")
        response = client.get(f"/api/classes/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json()["message"] == "Classe introuvable."


# ============================================================
# Élèves et enseignants
# ============================================================

def test_add_student_mauvais_role(client, login_as):
    login_as(Role.ADMIN)
    with patch("app.routers.classes.class_service.add_student") as mock:
        mock.side_effect = ValidationError("L'utilisateur n'a pas le rôle student.", error="wrong_role")
        response = client.post(f"/api/classes/{CLASS_ID}/students/{uuid.uuid4()}")
    assert response.status_code == 400
    assert response.json()["error"] == "wrong_role"


def test_assign_teacher_succes(client, login_as):
    login_as(Role.ADMIN)
    teacher_id = uuid.uuid4()
    with patch("app.routers.classes.class_service.assign_teacher") as mock:
        mock.return_value = [TeacherSubjects(
            teacher_id=teacher_id,
            teacher_name="Claire Petit",
            teacher_email="claire@ecole.be",
            subject_ids=[SUBJECT_ID],
            subject_names=["Mathématiques"],
        )]
        response = client.post(f"/api/classes/{CLASS_ID}/teachers", json={
            "teacherId": str(teacher_id), "subjectIds": [str(SUBJECT_ID)],
        })

    assert response.status_code == 200
    assert response.json()[0]["subjectNames"] == ["Mathématiques"]


def test_assign_teacher_sans_matiere(client, login_as):
    login_as(Role.ADMIN)
    response = client.post(f"/api/classes/{CLASS_ID}/teachers", json={
        "teacherId": str(uuid.uuid4()), "subjectIds": [],
    })
    assert response.status_code == 400


def test_remove_teacher(client, login_as):
    login_as(Role.ADMIN)
    with patch("app.routers.classes.class_service.remove_teacher") as mock:
        response = client.delete(f"/api/classes/{CLASS_ID}/teachers/{uuid.uuid4()}")
    assert response.status_code == 200
    mock.assert_called_once()


# ============================================================
# Matières et établissement
# ============================================================

def test_create_subject_doublon(client, login_as):
    login_as(Role.ADMIN)
    with patch("app.routers.subjects.subject_service.create_subject") as mock:
        mock.side_effect = ConflictError("Une matière nommée 'Maths' existe déjà.", error="subject_exists")
        response = client.post("/api/subjects", json={"name": "Maths", "description": "Algèbre"})
    assert response.status_code == 400
    assert response.json()["error"] == "subject_exists"


def test_create_school_reserve_au_superadmin(client, login_as):
    login_as(Role.ADMIN)
    response = client.post("/api/schools", json={
        "name": "Athénée", "admin": {"name": "Marc", "email": "marc@athenee.be", "password": "secret1"},
    })
    assert response.status_code == 403


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
