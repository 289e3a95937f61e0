"""
Service métier pour la gestion des classes : élèves, enseignants et matières enseignées.
"""

import uuid
import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from app.exceptions import NotFoundError, ValidationError
from app.models.exercise import Exercise
from app.models.progress import StudentProgress
from app.models.school_class import ClassTeacherSubject, SchoolClass
from app.models.subject import Subject
from app.models.user import User
from app.schemas.auth import CurrentUser
from app.schemas.common import PageParams, pagination
from app.schemas.school_class import (
    ClassCreate,
    ClassListResponse,
    ClassResponse,
    ClassStatistics,
    ClassStudentsResponse,
    ClassUpdate,
    TeacherAssign,
    TeacherSubjects,
)
from app.services import user_service
from app.services.access_rules import Action, Resource, ResourceKind, Role, authorize

logger = logging.getLogger(__name__)


def create_class(db: Session, actor: CurrentUser, data: ClassCreate) -> ClassResponse:
    """Crée une classe dans l'établissement de l'admin ; année scolaire par défaut : l'année en cours."""
    if actor.school_id is None:
        raise ValidationError("Une classe doit appartenir à un établissement.", error="no_school")
    school_class = SchoolClass(
        name=data.name,
        grade=data.grade,
        academic_year=data.academic_year or str(datetime.now().year),
        school_id=actor.school_id,
        created_by=actor.id,
    )
    db.add(school_class)
    db.commit()
    db.refresh(school_class)
    logger.info("Classe '%s' créée par %s", school_class.name, actor.id)
    return _to_response(school_class)


def get_classes(
    db: Session,
    actor: CurrentUser,
    page: PageParams,
    grade: Optional[str] = None,
    academic_year: Optional[str] = None,
) -> ClassListResponse:
    """
    Admin : toutes les classes de l'établissement.
    Enseignant : les classes où il enseigne. Élève : sa classe.
    """
    query = select(SchoolClass)
    if actor.role != Role.SUPERADMIN:
        query = query.where(SchoolClass.school_id == actor.school_id)
    if actor.role == Role.TEACHER:
        query = query.where(SchoolClass.id.in_(list(actor.teaching_class_ids)))
    elif actor.role == Role.STUDENT:
        if actor.student_class_id is None:
            return ClassListResponse(classes=[], pagination=pagination(page.page, page.limit, 0, "Classes"))
        query = query.where(SchoolClass.id == actor.student_class_id)
    if grade:
        query = query.where(SchoolClass.grade == grade)
    if academic_year:
        query = query.where(SchoolClass.academic_year == academic_year)

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    classes = db.execute(
        query.order_by(SchoolClass.created_at.desc()).offset(page.offset).limit(page.limit)
    ).scalars().all()

    return ClassListResponse(
        classes=[_to_response(c) for c in classes],
        pagination=pagination(page.page, page.limit, total, "Classes"),
    )


def get_class(db: Session, actor: CurrentUser, class_id: uuid.UUID) -> ClassResponse:
    """Classe avec ses compteurs élèves / enseignants / exercices."""
    school_class = get_scoped_class(db, actor, class_id)

    total_students = db.execute(
        select(func.count()).select_from(User).where(
            User.student_class_id == class_id, User.role == Role.STUDENT.value,
        )
    ).scalar() or 0
    total_teachers = db.execute(
        select(func.count(func.distinct(ClassTeacherSubject.teacher_id))).where(
            ClassTeacherSubject.class_id == class_id
        )
    ).scalar() or 0
    total_exercises = db.execute(
        select(func.count()).select_from(Exercise).where(Exercise.class_id == class_id)
    ).scalar() or 0

    return _to_response(school_class, ClassStatistics(
        total_students=total_students,
        total_teachers=total_teachers,
        total_exercises=total_exercises,
    ))


def update_class(db: Session, actor: CurrentUser, class_id: uuid.UUID, data: ClassUpdate) -> ClassResponse:
    school_class = get_scoped_class(db, actor, class_id)

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in update_data.items():
        setattr(school_class, field, value)

    db.commit()
    db.refresh(school_class)
    return _to_response(school_class)


def delete_class(db: Session, actor: CurrentUser, class_id: uuid.UUID) -> None:
    """
    Supprime une classe et tout ce qui en dépend : tentatives, exercices,
    affectations enseignants. Les élèves sont détachés, pas supprimés.
    """
    school_class = get_scoped_class(db, actor, class_id)

    db.execute(delete(StudentProgress).where(StudentProgress.class_id == class_id))
    db.execute(delete(Exercise).where(Exercise.class_id == class_id))
    db.execute(delete(ClassTeacherSubject).where(ClassTeacherSubject.class_id == class_id))
    db.execute(update(User).where(User.student_class_id == class_id).values(student_class_id=None))

    db.delete(school_class)
    db.commit()
    logger.info("Classe %s supprimée par %s", class_id, actor.id)


# --- Gestion des élèves ---

def add_student(db: Session, actor: CurrentUser, class_id: uuid.UUID, student_id: uuid.UUID) -> ClassResponse:
    """Rattache un élève du même établissement ; un élève n'a qu'une classe à la fois."""
    school_class = get_scoped_class(db, actor, class_id)
    student = _get_school_member(db, school_class, student_id, Role.STUDENT, "Élève introuvable.")

    student.student_class_id = class_id
    db.commit()
    logger.info("Élève %s ajouté à la classe %s", student_id, class_id)
    return _to_response(school_class)


def remove_student(db: Session, actor: CurrentUser, class_id: uuid.UUID, student_id: uuid.UUID) -> None:
    get_scoped_class(db, actor, class_id)
    student = db.get(User, student_id)
    if student is None or student.student_class_id != class_id:
        raise NotFoundError("Cet élève n'appartient pas à cette classe.")
    student.student_class_id = None
    db.commit()


def get_class_students(
    db: Session, actor: CurrentUser, class_id: uuid.UUID, page: PageParams
) -> ClassStudentsResponse:
    get_scoped_class(db, actor, class_id)
    query = select(User).where(User.student_class_id == class_id, User.role == Role.STUDENT.value)

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    students = db.execute(query.order_by(User.name).offset(page.offset).limit(page.limit)).scalars().all()

    return ClassStudentsResponse(
        students=[user_service.to_response(db, s) for s in students],
        pagination=pagination(page.page, page.limit, total, "Students"),
    )


# --- Gestion des enseignants ---

def assign_teacher(db: Session, actor: CurrentUser, class_id: uuid.UUID, data: TeacherAssign) -> list[TeacherSubjects]:
    """
    Affecte un enseignant à des matières de la classe.
    Les matières s'accumulent ; celles déjà affectées sont ignorées.
    """
    school_class = get_scoped_class(db, actor, class_id)
    _get_school_member(db, school_class, data.teacher_id, Role.TEACHER, "Enseignant introuvable.")

    found = set(db.execute(select(Subject.id).where(Subject.id.in_(data.subject_ids))).scalars().all())
    missing = set(data.subject_ids) - found
    if missing:
        raise NotFoundError("Matière introuvable.")

    existing = set(db.execute(
        select(ClassTeacherSubject.subject_id).where(
            ClassTeacherSubject.class_id == class_id,
            ClassTeacherSubject.teacher_id == data.teacher_id,
        )
    ).scalars().all())

    for subject_id in dict.fromkeys(data.subject_ids):
        if subject_id not in existing:
            db.add(ClassTeacherSubject(class_id=class_id, teacher_id=data.teacher_id, subject_id=subject_id))
    db.commit()

    logger.info("Enseignant %s affecté à la classe %s", data.teacher_id, class_id)
    return get_class_teachers(db, actor, class_id)


def remove_teacher(db: Session, actor: CurrentUser, class_id: uuid.UUID, teacher_id: uuid.UUID) -> None:
    """Retire l'enseignant de la classe pour toutes ses matières."""
    get_scoped_class(db, actor, class_id)
    result = db.execute(
        delete(ClassTeacherSubject).where(
            ClassTeacherSubject.class_id == class_id,
            ClassTeacherSubject.teacher_id == teacher_id,
        )
    )
    if not result.rowcount:
        raise NotFoundError("Cet enseignant n'est pas affecté à cette classe.")
    db.commit()


def get_class_teachers(db: Session, actor: CurrentUser, class_id: uuid.UUID) -> list[TeacherSubjects]:
    """Un enseignant par entrée, avec ses matières dans cette classe."""
    get_scoped_class(db, actor, class_id)
    rows = db.execute(
        select(User, Subject)
        .join(ClassTeacherSubject, ClassTeacherSubject.teacher_id == User.id)
        .join(Subject, Subject.id == ClassTeacherSubject.subject_id)
        .where(ClassTeacherSubject.class_id == class_id)
        .order_by(User.name, Subject.name)
    ).all()

    teachers = {}
    subjects = defaultdict(list)
    for teacher, subject in rows:
        teachers[teacher.id] = teacher
        subjects[teacher.id].append(subject)

    return [
        TeacherSubjects(
            teacher_id=teacher.id,
            teacher_name=teacher.name,
            teacher_email=teacher.email,
            subject_ids=[s.id for s in subjects[teacher.id]],
            subject_names=[s.name for s in subjects[teacher.id]],
        )
        for teacher in teachers.values()
    ]


# --- Helpers ---

def get_scoped_class(db: Session, actor: CurrentUser, class_id: uuid.UUID) -> SchoolClass:
    """Classe de l'établissement de l'appelant, sinon 404."""
    school_class = db.get(SchoolClass, class_id)
    if school_class is None:
        raise NotFoundError("Classe introuvable.")
    authorize(actor, Action.READ, Resource(kind=ResourceKind.CLASS, school_id=school_class.school_id))
    return school_class


def _get_school_member(db: Session, school_class: SchoolClass, user_id: uuid.UUID, role: Role, message: str) -> User:
    user = db.get(User, user_id)
    if user is None or user.school_id != school_class.school_id:
        raise NotFoundError(message)
    if user.role != role.value:
        raise ValidationError(f"L'utilisateur n'a pas le rôle {role.value}.", error="wrong_role")
    return user


def _to_response(school_class: SchoolClass, statistics: ClassStatistics = None) -> ClassResponse:
    return ClassResponse(
        id=school_class.id,
        name=school_class.name,
        grade=school_class.grade,
        school_id=school_class.school_id,
        academic_year=school_class.academic_year,
        is_active=school_class.is_active,
        created_at=school_class.created_at,
        updated_at=school_class.updated_at,
        statistics=statistics,
    )
