"""
Service métier pour les notes : saisie par l'enseignant, consultation,
statistiques et bulletin.

Les moyennes et appréciations sont calculées par app.services.grading.
"""

import uuid
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.models.grade import Grade
from app.models.school_class import SchoolClass
from app.models.subject import Subject
from app.models.user import User
from app.schemas.auth import CurrentUser
from app.schemas.grade import (
    ClassGradesResponse,
    GradeCreate,
    GradeResponse,
    GradeStatistics,
    GradeUpdate,
    ReportCardResponse,
    ReportCardSubject,
    StudentGradesResponse,
)
from app.services import grading
from app.services.access_rules import Action, Resource, ResourceKind, Role, authorize

logger = logging.getLogger(__name__)


def current_academic_year() -> str:
    return str(datetime.now().year)


def create_grade(db: Session, actor: CurrentUser, data: GradeCreate) -> GradeResponse:
    """
    Saisit une note. L'enseignant doit enseigner la matière dans la classe
    et l'élève doit appartenir à cette classe.
    """
    school_class = db.get(SchoolClass, data.class_id)
    if school_class is None:
        raise NotFoundError("Classe introuvable.")

    authorize(actor, Action.CREATE, Resource(
        kind=ResourceKind.GRADE,
        school_id=school_class.school_id,
        class_id=data.class_id,
        subject_id=data.subject_id,
    ), min_role=Role.TEACHER)

    student = db.get(User, data.student_id)
    if student is None or student.role != Role.STUDENT.value or student.student_class_id != data.class_id:
        raise ValidationError(
            "Élève introuvable ou n'appartenant pas à cette classe.", error="student_not_in_class"
        )

    academic_year = data.academic_year or current_academic_year()
    existing = db.execute(
        select(Grade.id).where(
            Grade.student_id == data.student_id,
            Grade.class_id == data.class_id,
            Grade.subject_id == data.subject_id,
            Grade.exam_name == data.exam_name,
            Grade.exam_type == data.exam_type,
            Grade.trimester == data.trimester,
            Grade.academic_year == academic_year,
        )
    ).scalar()
    if existing is not None:
        raise ConflictError("Une note existe déjà pour cet élève et cet examen.", error="grade_exists")

    grade = Grade(
        student_id=data.student_id,
        class_id=data.class_id,
        subject_id=data.subject_id,
        teacher_id=actor.id,
        school_id=school_class.school_id,
        exam_name=data.exam_name,
        exam_type=data.exam_type,
        grade=data.grade,
        coefficient=data.coefficient,
        exam_date=data.exam_date or datetime.now(),
        trimester=data.trimester,
        academic_year=academic_year,
        comments=data.comments,
    )
    db.add(grade)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Une note existe déjà pour cet élève et cet examen.", error="grade_exists")
    db.refresh(grade)
    logger.info("Note %.1f saisie pour l'élève %s par %s", grade.grade, grade.student_id, actor.id)
    return _to_response(grade)


def get_student_grades(
    db: Session,
    actor: CurrentUser,
    student_id: uuid.UUID,
    academic_year: Optional[str] = None,
    trimester: Optional[str] = None,
    subject_id: Optional[uuid.UUID] = None,
) -> StudentGradesResponse:
    """Notes d'un élève avec moyenne générale et moyennes par matière."""
    _get_student(db, actor, student_id)

    query = select(Grade, Subject.name).join(Subject, Subject.id == Grade.subject_id).where(
        Grade.student_id == student_id
    )
    if academic_year:
        query = query.where(Grade.academic_year == academic_year)
    if trimester:
        query = query.where(Grade.trimester == trimester)
    if subject_id:
        query = query.where(Grade.subject_id == subject_id)
    rows = db.execute(query.order_by(Grade.exam_date.desc())).all()

    grades = [g for g, _ in rows]
    names = {g.subject_id: name for g, name in rows}
    summary = grading.aggregate(grades, key=lambda g: names[g.subject_id])

    return StudentGradesResponse(
        grades=[_to_response(g, name) for g, name in rows],
        statistics=GradeStatistics(
            overall_average=summary.overall_average,
            overall_appreciation=summary.overall_appreciation,
            total_grades=summary.total_grades,
            subject_averages=summary.per_subject,
        ),
    )


def get_class_grades(
    db: Session,
    actor: CurrentUser,
    class_id: uuid.UUID,
    academic_year: Optional[str] = None,
    trimester: Optional[str] = None,
    subject_id: Optional[uuid.UUID] = None,
    exam_type: Optional[str] = None,
) -> ClassGradesResponse:
    """Notes d'une classe (enseignant de la classe ou admin)."""
    school_class = db.get(SchoolClass, class_id)
    if school_class is None:
        raise NotFoundError("Classe introuvable.")
    authorize(actor, Action.READ, Resource(kind=ResourceKind.GRADE, school_id=school_class.school_id),
              min_role=Role.TEACHER)
    if actor.role == Role.TEACHER and class_id not in actor.teaching_class_ids:
        raise AuthorizationError("Vous n'enseignez pas dans cette classe.", error="not_teaching_class")

    query = select(Grade, Subject.name).join(Subject, Subject.id == Grade.subject_id).where(
        Grade.class_id == class_id
    )
    if academic_year:
        query = query.where(Grade.academic_year == academic_year)
    if trimester:
        query = query.where(Grade.trimester == trimester)
    if subject_id:
        query = query.where(Grade.subject_id == subject_id)
    if exam_type:
        query = query.where(Grade.exam_type == exam_type)
    rows = db.execute(query.order_by(Grade.exam_date.desc())).all()

    return ClassGradesResponse(
        grades=[_to_response(g, name) for g, name in rows],
        total_grades=len(rows),
    )


def update_grade(db: Session, actor: CurrentUser, grade_id: uuid.UUID, data: GradeUpdate) -> GradeResponse:
    """Seul l'enseignant qui a saisi la note peut la modifier ; l'appréciation suit la note."""
    grade = _get_or_404(db, grade_id)
    _authorize_owner(actor, Action.UPDATE, grade)

    if data.grade is not None:
        grade.grade = data.grade
    if data.comments is not None:
        grade.comments = data.comments

    db.commit()
    db.refresh(grade)
    return _to_response(grade)


def delete_grade(db: Session, actor: CurrentUser, grade_id: uuid.UUID) -> None:
    grade = _get_or_404(db, grade_id)
    _authorize_owner(actor, Action.DELETE, grade)
    db.delete(grade)
    db.commit()
    logger.info("Note %s supprimée par %s", grade_id, actor.id)


def get_report_card(
    db: Session,
    actor: CurrentUser,
    student_id: uuid.UUID,
    academic_year: Optional[str] = None,
    trimester: Optional[str] = None,
) -> ReportCardResponse:
    """Bulletin : moyenne et appréciation par matière, puis moyenne générale."""
    student = _get_student(db, actor, student_id)

    query = select(Grade, Subject.name).join(Subject, Subject.id == Grade.subject_id).where(
        Grade.student_id == student_id
    )
    if academic_year:
        query = query.where(Grade.academic_year == academic_year)
    if trimester:
        query = query.where(Grade.trimester == trimester)
    rows = db.execute(query.order_by(Subject.name, Grade.exam_date)).all()

    grades = [g for g, _ in rows]
    names = {g.subject_id: name for g, name in rows}
    summary = grading.aggregate(grades)
    by_subject = grading.group_by_subject(grades, key=lambda g: g.subject_id)

    subjects = [
        ReportCardSubject(
            subject_id=records[0].subject_id,
            subject_name=names[records[0].subject_id],
            average=summary.per_subject[key].average,
            appreciation=summary.per_subject[key].appreciation,
            grade_count=summary.per_subject[key].grade_count,
            total_coefficient=summary.per_subject[key].total_coefficient,
            grades=[_to_response(g, names[g.subject_id]) for g in records],
        )
        for key, records in by_subject.items()
    ]
    subjects.sort(key=lambda s: s.subject_name)

    return ReportCardResponse(
        student_id=student.id,
        student_name=student.name,
        class_id=student.student_class_id,
        academic_year=academic_year or current_academic_year(),
        trimester=trimester,
        subjects=subjects,
        overall_average=summary.overall_average,
        overall_appreciation=summary.overall_appreciation,
        total_grades=summary.total_grades,
    )


# --- Helpers ---

def _get_or_404(db: Session, grade_id: uuid.UUID) -> Grade:
    grade = db.get(Grade, grade_id)
    if grade is None:
        raise NotFoundError("Note introuvable.")
    return grade


def _get_student(db: Session, actor: CurrentUser, student_id: uuid.UUID) -> User:
    """Élève consultable par lui-même, ses enseignants ou l'admin de l'établissement."""
    student = db.get(User, student_id)
    if student is None or student.role != Role.STUDENT.value:
        raise NotFoundError("Élève introuvable.")
    authorize(actor, Action.READ, Resource(
        kind=ResourceKind.GRADE,
        school_id=student.school_id,
        class_id=student.student_class_id,
        student_id=student.id,
    ))
    return student


def _authorize_owner(actor: CurrentUser, action: Action, grade: Grade) -> None:
    authorize(actor, action, Resource(
        kind=ResourceKind.GRADE,
        school_id=grade.school_id,
        class_id=grade.class_id,
        subject_id=grade.subject_id,
        owner_id=grade.teacher_id,
    ), min_role=Role.TEACHER)
    # La saisie reste réservée à l'enseignant, même pour un admin
    if grade.teacher_id != actor.id:
        raise AuthorizationError("Seul l'enseignant ayant saisi la note peut la modifier.", error="not_owner")


def _to_response(grade: Grade, subject_name: Optional[str] = None) -> GradeResponse:
    return GradeResponse(
        id=grade.id,
        student_id=grade.student_id,
        class_id=grade.class_id,
        subject_id=grade.subject_id,
        subject_name=subject_name,
        teacher_id=grade.teacher_id,
        exam_name=grade.exam_name,
        exam_type=grade.exam_type,
        grade=grade.grade,
        coefficient=grade.coefficient,
        exam_date=grade.exam_date,
        trimester=grade.trimester,
        academic_year=grade.academic_year,
        comments=grade.comments,
        appreciation=grade.appreciation,
        created_at=grade.created_at,
    )
