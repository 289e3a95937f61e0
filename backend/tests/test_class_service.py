"""
Tests unitaires pour le service de gestion des classes.
"""

import uuid
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.exceptions import NotFoundError, ValidationError
from app.schemas.common import PageParams
from app.schemas.school_class import ClassCreate, TeacherAssign
from app.services.access_rules import Role
from app.services.class_service import (
    add_student,
    assign_teacher,
    create_class,
    delete_class,
    get_class,
    get_classes,
    remove_student,
    remove_teacher,
)
from conftest import CLASS_ID, SCHOOL_ID, SUBJECT_ID, make_user


# --- Helpers ---

def make_class_mock(class_id=CLASS_ID, school_id=SCHOOL_ID):
    c = MagicMock()
    c.id = class_id
    c.name = "5ème B"
    c.grade = "5ème"
    c.school_id = school_id
    c.academic_year = "2025"
    c.is_active = True
    c.created_at = None
    c.updated_at = None
    return c


def make_member_mock(role="student", school_id=SCHOOL_ID, student_class_id=None):
    u = MagicMock()
    u.id = uuid.uuid4()
    u.role = role
    u.school_id = school_id
    u.student_class_id = student_class_id
    return u


def make_db_mock(school_class=None, member=None, scalar_value=0):
    db = MagicMock()
    db.get.side_effect = lambda model, _id: school_class if model.__name__ == "SchoolClass" else member
    db.execute.return_value.scalars.return_value.all.return_value = []
    db.execute.return_value.scalar.return_value = scalar_value
    return db


def result_with(ids):
    result = MagicMock()
    result.scalars.return_value.all.return_value = ids
    return result


# --- Validation des schémas ---

def test_class_create_nom_vide_rejete():
    with pytest.raises(PydanticValidationError):
        ClassCreate(name="   ", grade="5ème")


def test_class_create_nom_valide():
    c = ClassCreate(name="  5ème B  ", grade="5ème")
    assert c.name == "5ème B"  # strip appliqué


def test_teacher_assign_liste_vide_rejetee():
    with pytest.raises(PydanticValidationError):
        TeacherAssign(teacher_id=uuid.uuid4(), subject_ids=[])


# --- create_class ---

def test_create_class_succes():
    db = make_db_mock()
    admin = make_user(Role.ADMIN)
    with patch("app.services.class_service._to_response") as mock_resp:
        mock_resp.return_value = MagicMock()
        result = create_class(db, admin, ClassCreate(name="5ème B", grade="5ème"))

    created = db.add.call_args[0][0]
    assert created.school_id == SCHOOL_ID
    assert created.academic_year  # année en cours par défaut
    db.commit.assert_called_once()
    assert result is not None


def test_create_class_sans_etablissement():
    with pytest.raises(ValidationError):
        create_class(make_db_mock(), make_user(Role.SUPERADMIN), ClassCreate(name="5ème B", grade="5ème"))


# --- get_classes / get_class ---

def test_get_classes_eleve_sans_classe():
    student = make_user(Role.STUDENT, student_class_id=None)
    db = make_db_mock()
    result = get_classes(db, student, PageParams(page=1, limit=20))
    assert result.classes == []
    db.execute.assert_not_called()


def test_get_class_statistiques():
    db = make_db_mock(make_class_mock(), scalar_value=4)
    result = get_class(db, make_user(Role.ADMIN), CLASS_ID)
    assert result.statistics.total_students == 4
    assert result.statistics.total_exercises == 4


def test_get_class_autre_etablissement():
    db = make_db_mock(make_class_mock(school_id=uuid.uuid4()))
    with pytest.raises(NotFoundError):
        get_class(db, make_user(Role.ADMIN), CLASS_ID)


def test_get_class_introuvable():
    with pytest.raises(NotFoundError):
        get_class(make_db_mock(), make_user(Role.ADMIN), uuid.uuid4())


# --- delete_class ---

def test_delete_class_cascade():
    school_class = make_class_mock()
    db = make_db_mock(school_class)
    delete_class(db, make_user(Role.ADMIN), CLASS_ID)
    # tentatives, exercices, affectations, détachement des élèves
    assert db.execute.call_count == 4
    db.delete.assert_called_once_with(school_class)
    db.commit.assert_called_once()


# --- Élèves ---

def test_add_student_succes():
    student = make_member_mock()
    db = make_db_mock(make_class_mock(), student)
    add_student(db, make_user(Role.ADMIN), CLASS_ID, student.id)
    assert student.student_class_id == CLASS_ID
    db.commit.assert_called_once()


def test_add_student_autre_etablissement():
    student = make_member_mock(school_id=uuid.uuid4())
    db = make_db_mock(make_class_mock(), student)
    with pytest.raises(NotFoundError):
        add_student(db, make_user(Role.ADMIN), CLASS_ID, student.id)


def test_add_student_mauvais_role():
    teacher = make_member_mock(role="teacher")
    db = make_db_mock(make_class_mock(), teacher)
    with pytest.raises(ValidationError) as exc:
        add_student(db, make_user(Role.ADMIN), CLASS_ID, teacher.id)
    assert exc.value.error == "wrong_role"


def test_remove_student_pas_dans_la_classe():
    student = make_member_mock(student_class_id=uuid.uuid4())
    db = make_db_mock(make_class_mock(), student)
    with pytest.raises(NotFoundError):
        remove_student(db, make_user(Role.ADMIN), CLASS_ID, student.id)


def test_remove_student_succes():
    student = make_member_mock(student_class_id=CLASS_ID)
    db = make_db_mock(make_class_mock(), student)
    remove_student(db, make_user(Role.ADMIN), CLASS_ID, student.id)
    assert student.student_class_id is None


# --- Enseignants ---

def test_assign_teacher_matieres_cumulees():
    teacher = make_member_mock(role="teacher")
    new_subject = uuid.uuid4()
    db = make_db_mock(make_class_mock(), teacher)
    db.execute.side_effect = [
        result_with([SUBJECT_ID, new_subject]),  # matières existantes
        result_with([SUBJECT_ID]),               # déjà affectées
    ]

    with patch("app.services.class_service.get_class_teachers", return_value=[]):
        assign_teacher(db, make_user(Role.ADMIN), CLASS_ID, TeacherAssign(
            teacher_id=teacher.id, subject_ids=[SUBJECT_ID, new_subject],
        ))

    db.add.assert_called_once()
    assert db.add.call_args[0][0].subject_id == new_subject
    db.commit.assert_called_once()


def test_assign_teacher_matiere_inconnue():
    teacher = make_member_mock(role="teacher")
    db = make_db_mock(make_class_mock(), teacher)
    db.execute.side_effect = [result_with([])]
    with pytest.raises(NotFoundError):
        assign_teacher(db, make_user(Role.ADMIN), CLASS_ID, TeacherAssign(
            teacher_id=teacher.id, subject_ids=[SUBJECT_ID],
        ))
    db.add.assert_not_called()


def test_remove_teacher_non_affecte():
    db = make_db_mock(make_class_mock())
    db.execute.return_value.rowcount = 0
    with pytest.raises(NotFoundError):
        remove_teacher(db, make_user(Role.ADMIN), CLASS_ID, uuid.uuid4())
    db.commit.assert_not_called()
