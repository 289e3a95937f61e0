"""
Tests d'intégration API pour les exercices, la soumission et les notes.
"""

import uuid
from unittest.mock import patch

from app.exceptions import AttemptLimitError, AuthorizationError
from app.schemas.exercise import SubmissionResponse
from app.schemas.grade import GradeResponse
from app.services.access_rules import Role
from conftest import CLASS_ID, SUBJECT_ID


def make_submission(**kwargs) -> SubmissionResponse:
    return SubmissionResponse(
        progress_id=uuid.uuid4(),
        total_points_earned=kwargs.get("earned", 2),
        max_possible_points=kwargs.get("maximum", 5),
        accuracy_percentage=kwargs.get("accuracy", 40),
        attempt_number=kwargs.get("attempt", 1),
    )


def exercise_body(**overrides):
    body = {
        "title": "Capitales",
        "type": "qcm",
        "subjectId": str(SUBJECT_ID),
        "classId": str(CLASS_ID),
        "qcmQuestions": [{
            "questionText": "Capitale de la France ?",
            "options": [{"text": "Paris", "isCorrect": True}, {"text": "Lyon"}],
        }],
    }
    body.update(overrides)
    return body


# ============================================================
# POST /api/exercises
# ============================================================

def test_create_exercise_reserve_aux_enseignants(client, login_as):
    login_as(Role.ADMIN)
    response = client.post("/api/exercises", json=exercise_body())
    assert response.status_code == 403


def test_create_exercise_sans_question(client, login_as):
    login_as(Role.TEACHER)
    response = client.post("/api/exercises", json=exercise_body(qcmQuestions=[]))
    assert response.status_code == 400


def test_create_exercise_type_inconnu(client, login_as):
    login_as(Role.TEACHER)
    response = client.post("/api/exercises", json=exercise_body(type="essay"))
    assert response.status_code == 400


# ============================================================
# POST /api/exercises/{id}/submit
# ============================================================

def test_submit_succes(client, login_as):
    login_as(Role.STUDENT)
    with patch("app.routers.exercises.exercise_service.submit_exercise") as mock:
        mock.return_value = make_submission()
        response = client.post(f"/api/exercises/{uuid.uuid4()}/submit", json={"answers": ["a", "c"], "timeSpent": 42})

    assert response.status_code == 201
    body = response.json()
    assert body["accuracyPercentage"] == 40
    assert body["attemptNumber"] == 1
    assert mock.call_args[0][3].time_spent == 42


def test_submit_limite_atteinte(client, login_as):
    login_as(Role.STUDENT)
    with patch("app.routers.exercises.exercise_service.submit_exercise") as mock:
        mock.side_effect = AttemptLimitError("Nombre maximal de tentatives atteint pour cet exercice (3).")
        response = client.post(f"/api/exercises/{uuid.uuid4()}/submit", json={"answers": []})

    assert response.status_code == 400
    assert response.json()["error"] == "attempt_limit_reached"


def test_submit_reserve_aux_eleves(client, login_as):
    login_as(Role.TEACHER)
    response = client.post(f"/api/exercises/{uuid.uuid4()}/submit", json={"answers": []})
    assert response.status_code == 403


def test_submit_answers_manquantes(client, login_as):
    login_as(Role.STUDENT)
    response = client.post(f"/api/exercises/{uuid.uuid4()}/submit", json={})
    assert response.status_code == 400


# ============================================================
# GET /api/exercises
# ============================================================

def test_list_exercises_filtres(client, login_as):
    login_as(Role.TEACHER)
    with patch("app.routers.exercises.exercise_service.get_exercises") as mock:
        mock.return_value = {"exercises": [], "pagination": {"currentPage": 1, "totalPages": 0, "totalExercises": 0}}
        response = client.get(f"/api/exercises?classId={CLASS_ID}&type=qcm")

    assert response.status_code == 200
    args = mock.call_args[0]
    assert args[3] == CLASS_ID
    assert args[5] == "qcm"


def test_get_exercise_non_createur(client, login_as):
    login_as(Role.TEACHER)
    with patch("app.routers.exercises.exercise_service.get_exercise") as mock:
        mock.side_effect = AuthorizationError("Accès refusé.", error="not_owner")
        response = client.get(f"/api/exercises/{uuid.uuid4()}")
    assert response.status_code == 403


def test_get_exercise_id_invalide(client, login_as):
    login_as(Role.STUDENT)
    response = client.get("/api/exercises/pas-un-uuid")
    assert response.status_code == 400


# ============================================================
# Notes
# ============================================================

def test_create_grade_note_hors_bareme(client, login_as):
    login_as(Role.TEACHER)
    response = client.post("/api/grades", json={
        "studentId": str(uuid.uuid4()),
        "classId": str(CLASS_ID),
        "subjectId": str(SUBJECT_ID),
        "examName": "Contrôle 1",
        "examType": "controle",
        "grade": 21,
        "trimester": "1er Trimestre",
    })
    assert response.status_code == 400


def test_create_grade_succes(client, login_as):
    teacher = login_as(Role.TEACHER)
    with patch("app.routers.grades.grade_service.create_grade") as mock:
        mock.return_value = GradeResponse(
            id=uuid.uuid4(),
            student_id=uuid.uuid4(),
            class_id=CLASS_ID,
            subject_id=SUBJECT_ID,
            teacher_id=teacher.id,
            exam_name="Contrôle 1",
            exam_type="controle",
            grade=15.5,
            coefficient=2,
            trimester="1er Trimestre",
            academic_year="2025",
            appreciation="Bien",
        )
        response = client.post("/api/grades", json={
            "studentId": str(uuid.uuid4()),
            "classId": str(CLASS_ID),
            "subjectId": str(SUBJECT_ID),
            "examName": "Contrôle 1",
            "examType": "controle",
            "grade": 15.5,
            "coefficient": 2,
            "trimester": "1er Trimestre",
        })

    assert response.status_code == 201
    assert response.json()["appreciation"] == "Bien"


def test_class_grades_interdit_aux_eleves(client, login_as):
    login_as(Role.STUDENT)
    response = client.get(f"/api/grades/class/{CLASS_ID}")
    assert response.status_code == 403
