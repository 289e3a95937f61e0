"""
Tests unitaires pour le service des utilisateurs (connexion, hiérarchie, suppression).
"""

import uuid
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError

from app.exceptions import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.schemas.auth import LoginRequest
from app.schemas.user import PasswordChange, UserCreate
from app.services.access_rules import Role
from app.services.user_service import (
    change_password,
    create_user,
    delete_user,
    load_current_user,
    login,
)
from conftest import CLASS_ID, SCHOOL_ID, SUBJECT_ID, make_user


# --- Helpers ---

def make_user_mock(role="student", school_id=SCHOOL_ID, **kwargs):
    u = MagicMock()
    u.id = kwargs.get("id", uuid.uuid4())
    u.name = "Bob Dupont"
    u.email = "bob@ecole.be"
    u.role = role
    u.school_id = school_id
    u.student_class_id = kwargs.get("student_class_id")
    u.password_hash = "hash"
    return u


def make_school_mock(is_active=True):
    s = MagicMock()
    s.id = SCHOOL_ID
    s.is_active = is_active
    return s


def make_db_mock(scalar_value=None):
    db = MagicMock()
    db.get.return_value = None
    db.execute.return_value.scalar.return_value = scalar_value
    db.execute.return_value.scalar_one_or_none.return_value = None
    db.execute.return_value.scalars.return_value.all.return_value = []
    db.execute.return_value.all.return_value = []
    return db


def teacher_payload(**overrides):
    data = {"name": "Claire Petit", "email": "Claire@Ecole.be", "password": "secret1", "role": "teacher"}
    data.update(overrides)
    return UserCreate.model_validate(data)


# --- Validation des schémas ---

def test_user_create_email_normalise():
    assert teacher_payload().email == "claire@ecole.be"


def test_user_create_mot_de_passe_trop_court():
    with pytest.raises(PydanticValidationError):
        teacher_payload(password="123")


def test_user_create_email_invalide():
    with pytest.raises(PydanticValidationError):
        teacher_payload(email="pas-un-email")


# --- login ---

def test_login_identifiants_invalides():
    db = make_db_mock()
    with pytest.raises(AuthenticationError) as exc:
        login(db, LoginRequest(email="x@ecole.be", password="secret1"))
    assert exc.value.error == "invalid_credentials"


def test_login_etablissement_bloque():
    db = make_db_mock()
    db.execute.return_value.scalar_one_or_none.return_value = make_user_mock()
    db.get.return_value = make_school_mock(is_active=False)
    with patch("app.services.user_service.verify_password", return_value=True):
        with pytest.raises(AuthorizationError) as exc:
            login(db, LoginRequest(email="bob@ecole.be", password="secret1"))
    assert exc.value.error == "school_blocked"


def test_login_succes():
    db = make_db_mock()
    db.execute.return_value.scalar_one_or_none.return_value = make_user_mock()
    db.get.return_value = make_school_mock()
    with patch("app.services.user_service.verify_password", return_value=True), \
         patch("app.services.user_service.to_response") as mock_resp:
        mock_resp.return_value = MagicMock()
        result = login(db, LoginRequest(email="bob@ecole.be", password="secret1"))
    assert result.token


# --- load_current_user ---

def test_load_current_user_introuvable():
    with pytest.raises(AuthenticationError):
        load_current_user(make_db_mock(), uuid.uuid4())


def test_load_current_user_enseignant_regroupe_ses_classes():
    teacher = make_user_mock(role="teacher")
    other_subject = uuid.uuid4()
    db = make_db_mock()
    db.get.side_effect = lambda model, _id: teacher if model.__name__ == "User" else make_school_mock()
    db.execute.return_value.all.return_value = [(CLASS_ID, SUBJECT_ID), (CLASS_ID, other_subject)]

    current = load_current_user(db, teacher.id)

    assert current.role == Role.TEACHER
    assert len(current.teaching_classes) == 1
    assert current.teaches(CLASS_ID, other_subject)


# --- create_user ---

def test_admin_ne_cree_pas_d_admin():
    db = make_db_mock()
    with pytest.raises(AuthorizationError) as exc:
        create_user(db, make_user(Role.ADMIN), teacher_payload(role="admin"))
    assert exc.value.error == "role_hierarchy"


def test_enseignant_ne_cree_pas_de_compte():
    with pytest.raises(AuthorizationError):
        create_user(make_db_mock(), make_user(Role.TEACHER), teacher_payload(role="student"))


def test_create_user_email_deja_utilise():
    db = make_db_mock(scalar_value=uuid.uuid4())
    with pytest.raises(ConflictError) as exc:
        create_user(db, make_user(Role.ADMIN), teacher_payload())
    assert exc.value.error == "email_taken"
    db.add.assert_not_called()


def test_create_user_course_sur_l_email():
    db = make_db_mock()
    db.commit.side_effect = IntegrityError("INSERT", {}, Exception("users_email_key"))
    with patch("app.services.user_service.hash_password", return_value="hash"):
        with pytest.raises(ConflictError):
            create_user(db, make_user(Role.ADMIN), teacher_payload())
    db.rollback.assert_called_once()


def test_create_user_classe_d_un_autre_etablissement():
    other_class = MagicMock()
    other_class.school_id = uuid.uuid4()
    db = make_db_mock()
    db.get.return_value = other_class
    with pytest.raises(NotFoundError):
        create_user(db, make_user(Role.ADMIN), teacher_payload(role="student", student_class_id=str(CLASS_ID)))


def test_create_user_succes():
    db = make_db_mock()
    admin = make_user(Role.ADMIN)
    with patch("app.services.user_service.hash_password", return_value="hash"), \
         patch("app.services.user_service.to_response") as mock_resp:
        mock_resp.return_value = MagicMock()
        create_user(db, admin, teacher_payload())

    created = db.add.call_args[0][0]
    assert created.school_id == SCHOOL_ID
    assert created.role == "teacher"
    assert created.created_by == admin.id
    db.commit.assert_called_once()


# --- delete_user ---

def test_delete_dernier_admin_refuse():
    db = make_db_mock(scalar_value=1)
    db.get.return_value = make_user_mock(role="admin")
    with pytest.raises(ValidationError) as exc:
        delete_user(db, make_user(Role.ADMIN), uuid.uuid4())
    assert exc.value.error == "last_admin"
    db.delete.assert_not_called()


def test_delete_enseignant_retire_ses_affectations():
    link = MagicMock()
    teacher = make_user_mock(role="teacher")
    db = make_db_mock()
    db.get.return_value = teacher
    db.execute.return_value.scalars.return_value.all.return_value = [link]

    delete_user(db, make_user(Role.ADMIN), teacher.id)

    db.delete.assert_any_call(link)
    db.delete.assert_any_call(teacher)
    db.commit.assert_called_once()


def test_delete_utilisateur_autre_etablissement():
    db = make_db_mock()
    db.get.return_value = make_user_mock(school_id=uuid.uuid4())
    with pytest.raises(NotFoundError):
        delete_user(db, make_user(Role.ADMIN), uuid.uuid4())


# --- change_password ---

def test_changer_son_mot_de_passe_sans_l_actuel():
    actor = make_user(Role.TEACHER)
    db = make_db_mock()
    db.get.return_value = make_user_mock(id=actor.id)
    with pytest.raises(ValidationError) as exc:
        change_password(db, actor, actor.id, PasswordChange(new_password="nouveau1"))
    assert exc.value.error == "wrong_password"


def test_enseignant_ne_reinitialise_pas_un_autre_compte():
    with pytest.raises(AuthorizationError):
        change_password(make_db_mock(), make_user(Role.TEACHER), uuid.uuid4(), PasswordChange(new_password="nouveau1"))


def test_admin_reinitialise_un_mot_de_passe():
    target = make_user_mock()
    db = make_db_mock()
    db.get.return_value = target
    with patch("app.services.user_service.hash_password", return_value="nouveau-hash"):
        change_password(db, make_user(Role.ADMIN), target.id, PasswordChange(new_password="nouveau1"))
    assert target.password_hash == "nouveau-hash"
    db.commit.assert_called_once()
