"""
Service métier pour les notifications : publication avec pièces jointes,
fil de l'utilisateur, accusés de lecture et statistiques.

La visibilité par audience est décidée par notification_visibility ; la fenêtre
de publication est appliquée ici, dans la requête de listing.
"""

import uuid
import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile
from sqlalchemy import case, exists, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.models.notification import Notification, NotificationAttachment, NotificationRead
from app.models.school_class import SchoolClass
from app.schemas.auth import CurrentUser
from app.schemas.common import PageParams, pagination
from app.schemas.notification import (
    PRIORITY_ORDER,
    AttachmentResponse,
    NotificationCreate,
    NotificationListResponse,
    NotificationResponse,
    NotificationStats,
    NotificationUpdate,
)
from app.services import attachment_storage
from app.services.access_rules import Action, Resource, ResourceKind, Role, authorize
from app.services.notification_visibility import is_expired, is_read, is_visible, visible_clause

logger = logging.getLogger(__name__)


def create_notification(
    db: Session, actor: CurrentUser, data: NotificationCreate, files: List[UploadFile]
) -> NotificationResponse:
    """
    Publie une notification dans l'établissement de l'auteur.
    Un enseignant ne cible une classe précise que s'il y enseigne.
    """
    if actor.school_id is None:
        raise ValidationError("Une notification doit appartenir à un établissement.", error="no_school")
    if data.target_audience == "specific_class":
        school_class = db.get(SchoolClass, data.target_class_id)
        if school_class is None or school_class.school_id != actor.school_id:
            raise NotFoundError("Classe cible introuvable.")
        if actor.role == Role.TEACHER and data.target_class_id not in actor.teaching_class_ids:
            raise AuthorizationError(
                "Vous ne pouvez cibler que les classes où vous enseignez.", error="not_teaching_class"
            )

    stored = attachment_storage.save_uploads(files)

    notification = Notification(
        title=data.title,
        content=data.content,
        type=data.type,
        priority=data.priority,
        target_audience=data.target_audience,
        target_class_id=data.target_class_id,
        school_id=actor.school_id,
        publish_date=data.publish_date or datetime.now(),
        expiry_date=data.expiry_date,
        created_by=actor.id,
    )
    notification.attachments = [NotificationAttachment(**f._asdict()) for f in stored]
    db.add(notification)
    try:
        db.commit()
    except Exception:
        db.rollback()
        attachment_storage.remove_files([f.filename for f in stored])
        raise
    db.refresh(notification)

    logger.info(
        "Notification '%s' (%s, %d pièce(s) jointe(s)) publiée par %s",
        notification.title, notification.target_audience, len(stored), actor.id,
    )
    return _to_response(notification, actor)


def list_notifications(
    db: Session,
    actor: CurrentUser,
    page: PageParams,
    unread_only: bool = False,
    notification_type: Optional[str] = None,
    priority: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> NotificationListResponse:
    """
    Fil de l'utilisateur : notifications actives, publiées, visibles pour lui.
    status="expired" liste les notifications échues au lieu des notifications en cours.
    Tri : priorité décroissante puis date de publication décroissante.
    """
    now = datetime.now()
    query = select(Notification).where(
        Notification.is_active.is_(True),
        Notification.publish_date <= now,
    )
    if actor.role != Role.SUPERADMIN:
        query = query.where(Notification.school_id == actor.school_id)
    audience = visible_clause(actor)
    if audience is not None:
        query = query.where(audience)
    if status == "expired":
        query = query.where(Notification.expiry_date < now)
    else:
        query = query.where(or_(Notification.expiry_date.is_(None), Notification.expiry_date >= now))
    if notification_type:
        query = query.where(Notification.type == notification_type)
    if priority:
        query = query.where(Notification.priority == priority)
    if search:
        pattern = f"%{search}%"
        query = query.where(or_(Notification.title.ilike(pattern), Notification.content.ilike(pattern)))

    unread = ~exists().where(
        NotificationRead.notification_id == Notification.id,
        NotificationRead.user_id == actor.id,
    )
    unread_count = db.execute(select(func.count()).select_from(query.where(unread).subquery())).scalar() or 0
    if unread_only:
        query = query.where(unread)

    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    priority_rank = case(PRIORITY_ORDER, value=Notification.priority, else_=0)
    notifications = db.execute(
        query.order_by(priority_rank.desc(), Notification.publish_date.desc())
        .offset(page.offset)
        .limit(page.limit)
    ).scalars().all()

    return NotificationListResponse(
        notifications=[_to_response(n, actor) for n in notifications],
        pagination=pagination(page.page, page.limit, total, "Notifications"),
        unread_count=unread_count,
    )


def get_stats(db: Session, actor: CurrentUser) -> NotificationStats:
    """Statistiques des notifications de l'établissement (admin)."""
    query = select(Notification)
    if actor.role != Role.SUPERADMIN:
        query = query.where(Notification.school_id == actor.school_id)
    notifications = db.execute(query).scalars().all()

    total = len(notifications)
    return NotificationStats(
        total_notifications=total,
        active_notifications=sum(1 for n in notifications if n.is_active and not is_expired(n)),
        average_read_count=round(sum(len(n.reads) for n in notifications) / total, 2) if total else 0.0,
        by_type=dict(Counter(n.type for n in notifications)),
        by_priority=dict(Counter(n.priority for n in notifications)),
        by_audience=dict(Counter(n.target_audience for n in notifications)),
    )


def get_notification(db: Session, actor: CurrentUser, notification_id: uuid.UUID) -> NotificationResponse:
    """Détail d'une notification ; la consulter la marque comme lue."""
    notification = _get_visible(db, actor, notification_id)
    _add_read(db, actor, notification)
    db.refresh(notification)
    return _to_response(notification, actor)


def mark_as_read(db: Session, actor: CurrentUser, notification_id: uuid.UUID) -> NotificationResponse:
    """Idempotent : une seule lecture par utilisateur et par notification."""
    notification = _get_visible(db, actor, notification_id)
    _add_read(db, actor, notification)
    db.refresh(notification)
    return _to_response(notification, actor)


def _add_read(db: Session, actor: CurrentUser, notification: Notification) -> None:
    if is_read(actor.id, notification):
        return
    db.add(NotificationRead(notification_id=notification.id, user_id=actor.id))
    try:
        db.commit()
    except IntegrityError:
        # Lecture concurrente déjà enregistrée
        db.rollback()
        return
    logger.info("Notification %s lue par %s", notification.id, actor.id)


def update_notification(
    db: Session, actor: CurrentUser, notification_id: uuid.UUID, data: NotificationUpdate
) -> NotificationResponse:
    notification = _get_or_404(db, notification_id)
    authorize(actor, Action.UPDATE, _resource(notification), min_role=Role.TEACHER)

    update_data = data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        if value is None and field != "expiry_date":
            continue
        setattr(notification, field, value)

    db.commit()
    db.refresh(notification)
    return _to_response(notification, actor)


def delete_notification(db: Session, actor: CurrentUser, notification_id: uuid.UUID) -> None:
    """Supprime la notification puis ses fichiers joints."""
    notification = _get_or_404(db, notification_id)
    authorize(actor, Action.DELETE, _resource(notification), min_role=Role.TEACHER)

    filenames = [a.filename for a in notification.attachments]
    db.delete(notification)
    db.commit()
    attachment_storage.remove_files(filenames)
    logger.info("Notification %s supprimée par %s", notification_id, actor.id)


def get_attachment(
    db: Session, actor: CurrentUser, notification_id: uuid.UUID, filename: str
) -> tuple[Path, NotificationAttachment]:
    """Chemin disque et métadonnées d'une pièce jointe visible par l'appelant."""
    notification = _get_visible(db, actor, notification_id)
    attachment = next((a for a in notification.attachments if a.filename == filename), None)
    if attachment is None:
        raise NotFoundError("Pièce jointe introuvable.")
    return attachment_storage.attachment_path(attachment.filename), attachment


# --- Helpers ---

def _get_or_404(db: Session, notification_id: uuid.UUID) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError("Notification introuvable.")
    return notification


def _get_visible(db: Session, actor: CurrentUser, notification_id: uuid.UUID) -> Notification:
    notification = _get_or_404(db, notification_id)
    authorize(actor, Action.READ, Resource(kind=ResourceKind.NOTIFICATION, school_id=notification.school_id))
    if not is_visible(actor, notification):
        raise AuthorizationError("Vous n'avez pas accès à cette notification.", error="not_in_audience")
    return notification


def _resource(notification: Notification) -> Resource:
    return Resource(
        kind=ResourceKind.NOTIFICATION,
        school_id=notification.school_id,
        owner_id=notification.created_by,
    )


def _to_response(notification: Notification, actor: CurrentUser) -> NotificationResponse:
    return NotificationResponse(
        id=notification.id,
        title=notification.title,
        content=notification.content,
        type=notification.type,
        priority=notification.priority,
        target_audience=notification.target_audience,
        target_class_id=notification.target_class_id,
        attachments=[
            AttachmentResponse(
                filename=a.filename,
                original_name=a.original_name,
                mimetype=a.mimetype,
                size=a.size,
                url=f"/api/notifications/{notification.id}/attachments/{a.filename}",
                uploaded_at=a.uploaded_at,
            )
            for a in notification.attachments
        ],
        publish_date=notification.publish_date,
        expiry_date=notification.expiry_date,
        is_active=notification.is_active,
        is_expired=is_expired(notification),
        is_read=is_read(actor.id, notification),
        read_count=len(notification.reads),
        created_by=notification.created_by,
        created_at=notification.created_at,
    )
