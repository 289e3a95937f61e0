"""
Tests unitaires pour le suivi de progression (vue élève, classe, analyse d'exercice).
"""

import uuid
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from app.exceptions import AuthorizationError, NotFoundError
from app.services.access_rules import Role
from app.services.progress_service import (
    get_class_progress,
    get_exercise_analytics,
    get_student_overview,
    rounded_mean,
)
from conftest import CLASS_ID, SCHOOL_ID, SUBJECT_ID, make_user


# --- Helpers ---

def make_progress(student_id=None, accuracy=50, qcm_answers=None, attempt=1, subject_id=SUBJECT_ID):
    return SimpleNamespace(
        id=uuid.uuid4(),
        student_id=student_id or uuid.uuid4(),
        exercise_id=uuid.uuid4(),
        subject_id=subject_id,
        class_id=CLASS_ID,
        qcm_answers=qcm_answers or [],
        fill_blank_answers=[],
        total_points_earned=1,
        max_possible_points=2,
        accuracy_percentage=accuracy,
        attempt_number=attempt,
        started_at=None,
        completed_at=datetime.now(),
        time_spent=30,
    )


def make_db_mock(obj=None, rows=None, scalars=None):
    db = MagicMock()
    db.get.return_value = obj
    db.execute.return_value.all.return_value = rows or []
    db.execute.return_value.scalars.return_value.all.return_value = scalars or []
    return db


def qcm_answer(index, selected, correct):
    return {"question_index": index, "selected_option": selected, "is_correct": correct, "points_earned": 0}


# ============================================================
# rounded_mean
# ============================================================

def test_moyenne_arrondie():
    assert rounded_mean([50, 51]) == 51   # 50.5
    assert rounded_mean([33, 33, 34]) == 33
    assert rounded_mean([]) == 0


# ============================================================
# Vue élève
# ============================================================

def test_overview_repartition():
    student = make_user(Role.STUDENT)
    record_obj = SimpleNamespace(role="student", id=student.id, school_id=SCHOOL_ID, student_class_id=CLASS_ID)
    other_subject = uuid.uuid4()
    rows = [
        (make_progress(student.id, 80), "qcm", "easy", "Mathématiques"),
        (make_progress(student.id, 40), "qcm", "hard", "Mathématiques"),
        (make_progress(student.id, 100, subject_id=other_subject), "fill_blanks", "easy", "Français"),
    ]
    db = make_db_mock(record_obj, rows=rows)

    result = get_student_overview(db, student, student.id)

    stats = result.statistics
    assert stats.total_exercises == 3
    assert stats.average_accuracy == 73
    assert stats.exercises_by_type == {"qcm": 2, "fill_blanks": 1}
    assert stats.exercises_by_difficulty["easy"] == 2
    assert [s.subject_name for s in stats.subject_performance] == ["Français", "Mathématiques"]
    assert stats.subject_performance[1].average_accuracy == 60


def test_overview_autre_eleve_refuse():
    other = SimpleNamespace(role="student", id=uuid.uuid4(), school_id=SCHOOL_ID, student_class_id=CLASS_ID)
    with pytest.raises(AuthorizationError):
        get_student_overview(make_db_mock(other), make_user(Role.STUDENT), other.id)


def test_overview_eleve_introuvable():
    with pytest.raises(NotFoundError):
        get_student_overview(make_db_mock(None), make_user(Role.ADMIN), uuid.uuid4())


# ============================================================
# Vue classe
# ============================================================

def test_class_progress_enseignant_hors_classe():
    school_class = SimpleNamespace(id=uuid.uuid4(), school_id=SCHOOL_ID)
    with pytest.raises(AuthorizationError) as exc:
        get_class_progress(make_db_mock(school_class), make_user(Role.TEACHER), school_class.id)
    assert exc.value.error == "not_teaching_class"


def test_class_progress_regroupe_par_eleve():
    school_class = SimpleNamespace(id=CLASS_ID, school_id=SCHOOL_ID)
    lea, tom = uuid.uuid4(), uuid.uuid4()
    rows = [
        (make_progress(tom, 20), "Tom"),
        (make_progress(lea, 90), "Léa"),
        (make_progress(tom, 60), "Tom"),
    ]
    result = get_class_progress(make_db_mock(school_class, rows=rows), make_user(Role.TEACHER), CLASS_ID)

    assert result.total_students == 2
    assert result.total_exercises_completed == 3
    assert [s.student_name for s in result.class_progress] == ["Léa", "Tom"]
    assert result.class_progress[1].average_accuracy == 40


# ============================================================
# Analyse d'un exercice
# ============================================================

def test_analytics_distribution_des_options():
    teacher = make_user(Role.TEACHER)
    exercise = SimpleNamespace(
        id=uuid.uuid4(),
        title="Capitales",
        type="qcm",
        school_id=SCHOOL_ID,
        created_by=teacher.id,
        total_points=1,
        qcm_questions=[{
            "question_text": "Capitale de la France ?",
            "options": [{"id": "a", "text": "Paris", "is_correct": True}, {"id": "b", "text": "Lyon"}],
        }],
        fill_blank_questions=[],
    )
    student = uuid.uuid4()
    submissions = [
        make_progress(student, 100, [qcm_answer(0, "a", True)]),
        make_progress(student, 0, [qcm_answer(0, "b", False)], attempt=2),
        make_progress(None, 100, [qcm_answer(0, "a", True)]),
    ]
    db = make_db_mock(exercise, scalars=submissions)

    result = get_exercise_analytics(db, teacher, exercise.id)

    question = result.questions[0]
    assert question.total_answers == 3
    assert question.correct_answers == 2
    assert question.accuracy == 67
    assert question.option_distribution["a"].count == 2
    assert question.option_distribution["b"].count == 1
    assert result.overall.unique_students == 2


def test_analytics_reservee_au_createur():
    exercise = SimpleNamespace(school_id=SCHOOL_ID, created_by=uuid.uuid4())
    with pytest.raises(AuthorizationError):
        get_exercise_analytics(make_db_mock(exercise), make_user(Role.TEACHER), uuid.uuid4())
