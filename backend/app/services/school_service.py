"""
Service métier pour l'établissement (racine du tenant).

Un seul établissement peut exister ; il est créé avec son premier administrateur.
Les lectures passent par le school_id de l'appelant, jamais par une recherche globale,
sauf pour le superadmin qui n'est rattaché à aucun établissement.
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from app.models.school import School
from app.models.school_class import SchoolClass
from app.models.user import User
from app.schemas.auth import CurrentUser
from app.schemas.school import (
    SchoolAccessToggle,
    SchoolCreate,
    SchoolCreateResponse,
    SchoolRename,
    SchoolResponse,
    SchoolStatistics,
)
from app.security import hash_password
from app.services import user_service
from app.services.access_rules import Role

logger = logging.getLogger(__name__)


def create_school(db: Session, actor: CurrentUser, data: SchoolCreate) -> SchoolCreateResponse:
    """
    Crée l'établissement et son premier admin dans la même transaction.
    Refusé si un établissement existe déjà ou si l'email admin est pris.
    """
    if db.execute(select(School.id).limit(1)).scalar() is not None:
        raise ValidationError(
            "Un établissement existe déjà. Un seul établissement est autorisé.", error="school_exists"
        )
    if db.execute(select(User.id).where(User.email == data.admin.email)).scalar() is not None:
        raise ConflictError("Un compte avec cet email existe déjà.", error="email_taken")

    school = School(name=data.name)
    db.add(school)
    db.flush()

    admin = User(
        name=data.admin.name,
        email=data.admin.email,
        password_hash=hash_password(data.admin.password),
        role=Role.ADMIN.value,
        school_id=school.id,
        created_by=actor.id,
    )
    db.add(admin)
    db.flush()
    school.admin_id = admin.id

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Un compte avec cet email existe déjà.", error="email_taken")
    db.refresh(school)
    db.refresh(admin)

    logger.info("Établissement '%s' créé avec l'admin %s", school.name, admin.email)
    return SchoolCreateResponse(school=_to_response(school), admin=user_service.to_response(db, admin))


def get_school(db: Session, actor: CurrentUser) -> SchoolResponse:
    """Établissement de l'appelant avec ses compteurs."""
    school = _get_actor_school(db, actor)

    def count(role: Role) -> int:
        return db.execute(
            select(func.count()).select_from(User).where(User.school_id == school.id, User.role == role.value)
        ).scalar() or 0

    total_classes = db.execute(
        select(func.count()).select_from(SchoolClass).where(SchoolClass.school_id == school.id)
    ).scalar() or 0

    return _to_response(school, SchoolStatistics(
        total_teachers=count(Role.TEACHER),
        total_students=count(Role.STUDENT),
        total_classes=total_classes,
    ))


def toggle_access(db: Session, actor: CurrentUser, data: SchoolAccessToggle) -> SchoolResponse:
    """Bloque (avec motif) ou débloque l'accès de l'établissement."""
    school = _get_actor_school(db, actor)
    school.is_active = data.is_active
    school.blocked_reason = None if data.is_active else (data.blocked_reason or "Accès suspendu")
    db.commit()
    db.refresh(school)
    logger.info(
        "Établissement %s %s par %s", school.id, "débloqué" if data.is_active else "bloqué", actor.id
    )
    return _to_response(school)


def rename_school(db: Session, actor: CurrentUser, data: SchoolRename) -> SchoolResponse:
    school = _get_actor_school(db, actor)
    if not school.is_active:
        raise AuthorizationError(
            "Impossible de renommer l'établissement tant que son accès est bloqué.", error="school_blocked"
        )
    school.name = data.name
    db.commit()
    db.refresh(school)
    return _to_response(school)


def _get_actor_school(db: Session, actor: CurrentUser) -> School:
    if actor.school_id is not None:
        school = db.get(School, actor.school_id)
    elif actor.role == Role.SUPERADMIN:
        school = db.execute(select(School).limit(1)).scalar_one_or_none()
    else:
        school = None
    if school is None:
        raise NotFoundError("Aucun établissement trouvé.")
    return school


def _to_response(school: School, statistics: SchoolStatistics = None) -> SchoolResponse:
    return SchoolResponse(
        id=school.id,
        name=school.name,
        admin_id=school.admin_id,
        is_active=school.is_active,
        blocked_reason=school.blocked_reason,
        created_at=school.created_at,
        statistics=statistics,
    )
