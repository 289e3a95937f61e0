"""
Service métier pour les matières.
Nom unique sans tenir compte de la casse ; suppression refusée tant qu'une classe l'utilise.
"""

import uuid
import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.school_class import ClassTeacherSubject, SchoolClass
from app.models.subject import Subject
from app.schemas.auth import CurrentUser
from app.schemas.subject import ClassRef, SubjectCreate, SubjectDetailResponse, SubjectResponse, SubjectUpdate
from app.services.access_rules import Role

logger = logging.getLogger(__name__)


def create_subject(db: Session, data: SubjectCreate) -> SubjectResponse:
    _ensure_name_free(db, data.name)
    subject = Subject(name=data.name, description=data.description, image_path=data.image_path)
    db.add(subject)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Une matière nommée '{data.name}' existe déjà.", error="subject_exists")
    db.refresh(subject)
    logger.info("Matière créée : %s", subject.name)
    return _to_response(subject)


def get_subjects(db: Session) -> list[SubjectResponse]:
    subjects = db.execute(select(Subject).order_by(Subject.name)).scalars().all()
    return [_to_response(s) for s in subjects]


def get_subject(db: Session, actor: CurrentUser, subject_id: uuid.UUID) -> SubjectDetailResponse:
    """Matière et classes de l'établissement qui l'enseignent."""
    subject = _get_or_404(db, subject_id)

    query = (
        select(SchoolClass)
        .join(ClassTeacherSubject, ClassTeacherSubject.class_id == SchoolClass.id)
        .where(ClassTeacherSubject.subject_id == subject_id)
        .distinct()
        .order_by(SchoolClass.name)
    )
    if actor.role != Role.SUPERADMIN:
        query = query.where(SchoolClass.school_id == actor.school_id)
    classes = db.execute(query).scalars().all()

    return SubjectDetailResponse(
        subject=_to_response(subject),
        classes_using_subject=[ClassRef(id=c.id, name=c.name, grade=c.grade) for c in classes],
    )


def update_subject(db: Session, subject_id: uuid.UUID, data: SubjectUpdate) -> SubjectResponse:
    subject = _get_or_404(db, subject_id)

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in update_data:
        _ensure_name_free(db, update_data["name"], exclude_id=subject.id)
    for field, value in update_data.items():
        setattr(subject, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Une matière avec ce nom existe déjà.", error="subject_exists")
    db.refresh(subject)
    return _to_response(subject)


def delete_subject(db: Session, subject_id: uuid.UUID) -> None:
    subject = _get_or_404(db, subject_id)

    in_use = db.execute(
        select(func.count()).select_from(ClassTeacherSubject).where(ClassTeacherSubject.subject_id == subject_id)
    ).scalar() or 0
    if in_use:
        raise ValidationError(
            "Impossible de supprimer cette matière : elle est utilisée dans une ou plusieurs classes.",
            error="subject_in_use",
        )

    db.delete(subject)
    db.commit()
    logger.info("Matière supprimée : %s", subject.name)


def _ensure_name_free(db: Session, name: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    query = select(Subject.id).where(func.lower(Subject.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Subject.id != exclude_id)
    if db.execute(query).scalar() is not None:
        raise ConflictError(f"Une matière nommée '{name}' existe déjà.", error="subject_exists")


def _get_or_404(db: Session, subject_id: uuid.UUID) -> Subject:
    subject = db.get(Subject, subject_id)
    if subject is None:
        raise NotFoundError("Matière introuvable.")
    return subject


def _to_response(subject: Subject) -> SubjectResponse:
    return SubjectResponse(
        id=subject.id,
        name=subject.name,
        description=subject.description,
        image_path=subject.image_path,
        created_at=subject.created_at,
    )
