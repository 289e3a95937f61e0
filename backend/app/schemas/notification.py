"""
Schémas Pydantic pour les notifications et leurs pièces jointes.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import field_validator, model_validator

from app.schemas.common import CamelModel

NotificationType = Literal["general", "class", "exam", "schedule", "announcement"]
Priority = Literal["low", "medium", "high", "urgent"]
TargetAudience = Literal["all", "students", "teachers", "specific_class"]

PRIORITY_ORDER = {"urgent": 4, "high": 3, "medium": 2, "low": 1}


class NotificationCreate(CamelModel):
    title: str
    content: str
    type: NotificationType = "general"
    priority: Priority = "medium"
    target_audience: TargetAudience
    target_class_id: Optional[uuid.UUID] = None
    publish_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None

    @field_validator("title", "content")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le titre et le contenu sont obligatoires.")
        return v.strip()

    @model_validator(mode="after")
    def target_class_matches_audience(self):
        if self.target_audience == "specific_class" and self.target_class_id is None:
            raise ValueError("Une classe cible est requise pour l'audience 'specific_class'.")
        if self.target_audience != "specific_class" and self.target_class_id is not None:
            raise ValueError("Une classe cible n'est autorisée que pour l'audience 'specific_class'.")
        return self


class NotificationUpdate(CamelModel):
    title: Optional[str] = None
    content: Optional[str] = None
    type: Optional[NotificationType] = None
    priority: Optional[Priority] = None
    expiry_date: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("title", "content")
    @classmethod
    def not_empty(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Le titre et le contenu ne peuvent pas être vides.")
        return v.strip() if v else v


class AttachmentResponse(CamelModel):
    filename: str
    original_name: str
    mimetype: str
    size: int
    url: str
    uploaded_at: Optional[datetime] = None


class NotificationResponse(CamelModel):
    id: uuid.UUID
    title: str
    content: str
    type: str
    priority: str
    target_audience: str
    target_class_id: Optional[uuid.UUID] = None
    attachments: List[AttachmentResponse] = []
    publish_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    is_active: bool
    is_expired: bool
    is_read: bool
    read_count: int
    created_by: uuid.UUID
    created_at: Optional[datetime] = None


class NotificationListResponse(CamelModel):
    notifications: List[NotificationResponse]
    pagination: Dict[str, int]
    unread_count: int


class NotificationStats(CamelModel):
    total_notifications: int
    active_notifications: int
    average_read_count: float
    by_type: Dict[str, int]
    by_priority: Dict[str, int]
    by_audience: Dict[str, int]
