"""
Service métier pour les utilisateurs : authentification, hiérarchie de création,
profil et suppression avec nettoyage des affectations.
"""

import uuid
import logging
from collections import defaultdict
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.models.school import School
from app.models.school_class import ClassTeacherSubject, SchoolClass
from app.models.user import User
from app.schemas.auth import CurrentUser, LoginRequest, LoginResponse
from app.schemas.common import PageParams, pagination
from app.schemas.user import PasswordChange, UserCreate, UserListResponse, UserResponse, UserUpdate
from app.security import create_access_token, hash_password, verify_password
from app.services.access_rules import Action, Resource, ResourceKind, Role, TeachingAssignment, authorize

logger = logging.getLogger(__name__)

# Rôles que chaque créateur a le droit de créer
CREATABLE_ROLES = {
    Role.SUPERADMIN: {Role.ADMIN},
    Role.ADMIN: {Role.TEACHER, Role.STUDENT},
}


# --- Authentification ---

def login(db: Session, data: LoginRequest) -> LoginResponse:
    user = db.execute(select(User).where(User.email == data.email)).scalar_one_or_none()
    if user is None or not verify_password(data.password, user.password_hash):
        raise AuthenticationError("Email ou mot de passe invalide.", error="invalid_credentials")

    _check_school_active(db, user)

    token = create_access_token(str(user.id))
    logger.info("Connexion de %s (%s)", user.email, user.role)
    return LoginResponse(token=token, user=to_response(db, user))


def load_current_user(db: Session, user_id: uuid.UUID) -> CurrentUser:
    """Charge l'utilisateur du jeton et dérive ses classes enseignées."""
    user = db.get(User, user_id)
    if user is None:
        raise AuthenticationError("Jeton invalide : utilisateur introuvable.", error="invalid_token")

    _check_school_active(db, user)

    return CurrentUser(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        school_id=user.school_id,
        student_class_id=user.student_class_id,
        teaching_classes=get_teaching_classes(db, user.id) if user.role == Role.TEACHER else [],
    )


def get_teaching_classes(db: Session, teacher_id: uuid.UUID) -> list[TeachingAssignment]:
    """Regroupe les lignes class_teacher_subjects d'un enseignant par classe."""
    rows = db.execute(
        select(ClassTeacherSubject.class_id, ClassTeacherSubject.subject_id)
        .where(ClassTeacherSubject.teacher_id == teacher_id)
        .order_by(ClassTeacherSubject.class_id)
    ).all()

    by_class = defaultdict(list)
    for class_id, subject_id in rows:
        by_class[class_id].append(subject_id)
    return [TeachingAssignment(class_id=cid, subject_ids=sids) for cid, sids in by_class.items()]


def _check_school_active(db: Session, user: User) -> None:
    if user.school_id is None:
        return
    school = db.get(School, user.school_id)
    if school is not None and not school.is_active:
        raise AuthorizationError(
            "L'accès de votre établissement est bloqué. Contactez l'administrateur.",
            error="school_blocked",
        )


# --- CRUD ---

def create_user(db: Session, actor: CurrentUser, data: UserCreate) -> UserResponse:
    """
    Crée un compte selon la hiérarchie : superadmin → admin, admin → enseignant / élève.
    Lève ConflictError si l'email est déjà utilisé.
    """
    if data.role not in CREATABLE_ROLES.get(actor.role, set()):
        raise AuthorizationError(
            f"Le rôle {actor.role.value} ne peut pas créer de compte {data.role.value}.",
            error="role_hierarchy",
        )

    school_id = _target_school(db, actor, data)

    if data.student_class_id is not None:
        if data.role != Role.STUDENT:
            raise ValidationError("Seul un élève peut être rattaché à une classe.")
        school_class = db.get(SchoolClass, data.student_class_id)
        if school_class is None or school_class.school_id != school_id:
            raise NotFoundError("Classe introuvable.")

    _ensure_email_free(db, data.email)

    user = User(
        name=data.name,
        email=data.email,
        password_hash=hash_password(data.password),
        role=data.role.value,
        school_id=school_id,
        student_class_id=data.student_class_id,
        created_by=actor.id,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Cet email est déjà utilisé.", error="email_taken")
    db.refresh(user)
    logger.info("Compte %s créé : %s par %s", user.role, user.email, actor.id)
    return to_response(db, user)


def _target_school(db: Session, actor: CurrentUser, data: UserCreate) -> uuid.UUID:
    if actor.role != Role.SUPERADMIN:
        return actor.school_id
    if data.school_id is not None:
        if db.get(School, data.school_id) is None:
            raise NotFoundError("Établissement introuvable.")
        return data.school_id
    school_id = db.execute(select(School.id).limit(1)).scalar()
    if school_id is None:
        raise ValidationError("Aucun établissement n'existe encore.", error="no_school")
    return school_id


def _ensure_email_free(db: Session, email: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    query = select(User.id).where(User.email == email)
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    if db.execute(query).scalar() is not None:
        raise ConflictError("Cet email est déjà utilisé.", error="email_taken")


def list_users(db: Session, actor: CurrentUser, page: PageParams, role: Optional[Role] = None) -> UserListResponse:
    """
    Admin : tous les comptes de son établissement (filtre de rôle optionnel).
    Enseignant : uniquement les élèves de son établissement.
    Superadmin : tous les comptes.
    """
    query = select(User)
    if actor.role != Role.SUPERADMIN:
        query = query.where(User.school_id == actor.school_id)
    if actor.role == Role.TEACHER:
        query = query.where(User.role == Role.STUDENT.value)
    elif role is not None:
        query = query.where(User.role == role.value)

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    users = db.execute(
        query.order_by(User.created_at.desc()).offset(page.offset).limit(page.limit)
    ).scalars().all()

    return UserListResponse(
        users=[to_response(db, u) for u in users],
        pagination=pagination(page.page, page.limit, total, "Users"),
    )


def get_user(db: Session, actor: CurrentUser, user_id: uuid.UUID) -> UserResponse:
    user = _get_scoped(db, actor, user_id)
    return to_response(db, user)


def get_profile(db: Session, actor: CurrentUser) -> UserResponse:
    user = db.get(User, actor.id)
    if user is None:
        raise NotFoundError("Utilisateur introuvable.")
    return to_response(db, user)


def update_user(db: Session, actor: CurrentUser, user_id: uuid.UUID, data: UserUpdate) -> UserResponse:
    user = _get_scoped(db, actor, user_id)

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in update_data:
        _ensure_email_free(db, update_data["email"], exclude_id=user.id)
    for field, value in update_data.items():
        setattr(user, field, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Cet email est déjà utilisé.", error="email_taken")
    db.refresh(user)
    return to_response(db, user)


def delete_user(db: Session, actor: CurrentUser, user_id: uuid.UUID) -> None:
    """
    Supprime un compte.
    Refuse la suppression du dernier admin de l'établissement ; retire l'enseignant
    de ses affectations et détache l'élève de sa classe.
    """
    user = _get_scoped(db, actor, user_id)

    if user.role == Role.ADMIN.value:
        admin_count = db.execute(
            select(func.count()).select_from(User).where(
                User.role == Role.ADMIN.value, User.school_id == user.school_id,
            )
        ).scalar() or 0
        if admin_count <= 1:
            raise ValidationError(
                "Impossible de supprimer le dernier administrateur de l'établissement.",
                error="last_admin",
            )

    if user.role == Role.TEACHER.value:
        links = db.execute(
            select(ClassTeacherSubject).where(ClassTeacherSubject.teacher_id == user.id)
        ).scalars().all()
        for link in links:
            db.delete(link)
    elif user.role == Role.STUDENT.value:
        user.student_class_id = None

    db.delete(user)
    db.commit()
    logger.info("Compte %s supprimé par %s", user_id, actor.id)


def change_password(db: Session, actor: CurrentUser, user_id: uuid.UUID, data: PasswordChange) -> None:
    """
    L'utilisateur change son propre mot de passe (mot de passe actuel requis),
    ou un admin réinitialise celui d'un compte de son établissement.
    """
    if user_id == actor.id:
        user = db.get(User, actor.id)
        if user is None:
            raise NotFoundError("Utilisateur introuvable.")
        if not data.current_password or not verify_password(data.current_password, user.password_hash):
            raise ValidationError("Le mot de passe actuel est incorrect.", error="wrong_password")
    else:
        authorize(actor, Action.UPDATE, Resource(kind=ResourceKind.USER), min_role=Role.ADMIN)
        user = _get_scoped(db, actor, user_id)

    user.password_hash = hash_password(data.new_password)
    db.commit()
    logger.info("Mot de passe modifié pour %s", user.id)


def _get_scoped(db: Session, actor: CurrentUser, user_id: uuid.UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("Utilisateur introuvable.")
    # Un compte sans établissement (superadmin) n'est visible que d'un superadmin
    if user.school_id is None and actor.role != Role.SUPERADMIN:
        raise NotFoundError("Utilisateur introuvable.")
    authorize(actor, Action.READ, Resource(kind=ResourceKind.USER, school_id=user.school_id))
    return user


def to_response(db: Session, user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        school_id=user.school_id,
        student_class_id=user.student_class_id,
        teaching_classes=get_teaching_classes(db, user.id) if user.role == Role.TEACHER else [],
        created_at=user.created_at,
    )
