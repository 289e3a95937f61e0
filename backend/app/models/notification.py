"""
Modèles SQLAlchemy pour les notifications, leurs pièces jointes et leurs lectures.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(20), default="general", nullable=False)        # general, class, exam, schedule, announcement
    priority = Column(String(10), default="medium", nullable=False)     # low, medium, high, urgent
    target_audience = Column(String(20), nullable=False)                # all, students, teachers, specific_class
    target_class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=True)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)

    publish_date = Column(DateTime, server_default=func.now(), nullable=False)
    expiry_date = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    attachments = relationship(
        "NotificationAttachment", cascade="all, delete-orphan", lazy="selectin",
        order_by="NotificationAttachment.uploaded_at",
    )
    reads = relationship("NotificationRead", cascade="all, delete-orphan", lazy="selectin")


class NotificationAttachment(Base):
    __tablename__ = "notification_attachments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    notification_id = Column(
        UUID(as_uuid=True), ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False
    )
    filename = Column(String(255), nullable=False)       # Nom sur disque (unique)
    original_name = Column(String(255), nullable=False)
    mimetype = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False)
    uploaded_at = Column(DateTime, server_default=func.now())


class NotificationRead(Base):
    """Accusé de lecture : au plus une ligne par (notification, utilisateur)."""
    __tablename__ = "notification_reads"

    notification_id = Column(
        UUID(as_uuid=True), ForeignKey("notifications.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    read_at = Column(DateTime, server_default=func.now())
