"""
Router pour les notifications et leurs pièces jointes.
"""

import uuid
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import FileResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import get_current_user, require_role
from app.exceptions import ValidationError
from app.schemas.auth import CurrentUser
from app.schemas.common import MessageResponse, PageParams
from app.schemas.notification import (
    NotificationCreate,
    NotificationListResponse,
    NotificationResponse,
    NotificationStats,
    NotificationType,
    NotificationUpdate,
    Priority,
)
from app.services import notification_service
from app.services.access_rules import Role

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


def _parse_form(**fields) -> NotificationCreate:
    """Valide les champs du formulaire multipart avec le schéma JSON."""
    try:
        return NotificationCreate.model_validate({k: v for k, v in fields.items() if v not in (None, "")})
    except PydanticValidationError as e:
        message = "; ".join(err["msg"] for err in e.errors())
        raise ValidationError(message)


@router.post("", response_model=NotificationResponse, status_code=201, summary="Publier une notification")
def create_notification(
    title: str = Form(...),
    content: str = Form(...),
    target_audience: str = Form(..., alias="targetAudience"),
    type: Optional[str] = Form(None),
    priority: Optional[str] = Form(None),
    target_class_id: Optional[str] = Form(None, alias="targetClass"),
    publish_date: Optional[str] = Form(None, alias="publishDate"),
    expiry_date: Optional[str] = Form(None, alias="expiryDate"),
    attachments: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.TEACHER)),
):
    """
    Formulaire multipart : jusqu'à 5 pièces jointes (PDF, Excel, images), 10 Mo chacune.
    """
    data = _parse_form(
        title=title,
        content=content,
        target_audience=target_audience,
        type=type,
        priority=priority,
        target_class_id=target_class_id,
        publish_date=publish_date,
        expiry_date=expiry_date,
    )
    return notification_service.create_notification(db, current_user, data, attachments)


@router.get("", response_model=NotificationListResponse, summary="Mes notifications")
def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    notification_type: Optional[NotificationType] = Query(None, alias="type"),
    priority: Optional[Priority] = Query(None),
    status: Optional[Literal["active", "expired"]] = Query(None),
    search: Optional[str] = Query(None),
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return notification_service.list_notifications(
        db, current_user, page, unread_only, notification_type, priority, status, search
    )


@router.get("/stats", response_model=NotificationStats, summary="Statistiques des notifications")
def get_stats(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.ADMIN)),
):
    return notification_service.get_stats(db, current_user)


@router.get("/{notification_id}", response_model=NotificationResponse, summary="Détail d'une notification")
def get_notification(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """La consultation marque la notification comme lue."""
    return notification_service.get_notification(db, current_user, notification_id)


@router.patch("/{notification_id}/read", response_model=NotificationResponse, summary="Marquer comme lue")
def mark_as_read(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return notification_service.mark_as_read(db, current_user, notification_id)


@router.put("/{notification_id}", response_model=NotificationResponse, summary="Modifier une notification")
def update_notification(
    notification_id: uuid.UUID,
    data: NotificationUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.TEACHER)),
):
    """Admin ou enseignant auteur."""
    return notification_service.update_notification(db, current_user, notification_id, data)


@router.delete("/{notification_id}", response_model=MessageResponse, summary="Supprimer une notification")
def delete_notification(
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(require_role(Role.TEACHER)),
):
    """Supprime aussi les fichiers joints du disque."""
    notification_service.delete_notification(db, current_user, notification_id)
    return MessageResponse(message="Notification supprimée.")


@router.get("/{notification_id}/attachments/{filename}/download", summary="Télécharger une pièce jointe")
def download_attachment(
    notification_id: uuid.UUID,
    filename: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    path, attachment = notification_service.get_attachment(db, current_user, notification_id, filename)
    return FileResponse(path, media_type=attachment.mimetype, filename=attachment.original_name)


@router.get("/{notification_id}/attachments/{filename}", summary="Afficher une pièce jointe")
def view_attachment(
    notification_id: uuid.UUID,
    filename: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    path, attachment = notification_service.get_attachment(db, current_user, notification_id, filename)
    return FileResponse(
        path,
        media_type=attachment.mimetype,
        filename=attachment.original_name,
        content_disposition_type="inline",
    )
