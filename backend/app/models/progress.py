"""
Modèle SQLAlchemy pour les tentatives d'exercice (jamais modifiées après création).
"""

import uuid
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.database import Base


class StudentProgress(Base):
    __tablename__ = "student_progress"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    exercise_id = Column(UUID(as_uuid=True), ForeignKey("exercises.id", ondelete="CASCADE"), nullable=False)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id"), nullable=False)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)

    qcm_answers = Column(JSONB, nullable=False, default=list)
    fill_blank_answers = Column(JSONB, nullable=False, default=list)

    total_points_earned = Column(Float, nullable=False)
    max_possible_points = Column(Float, nullable=False)
    accuracy_percentage = Column(Integer, nullable=False)

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, server_default=func.now())
    time_spent = Column(Integer, default=0)  # secondes
    attempt_number = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now())

    # Deux soumissions concurrentes sur le même créneau : la seconde échoue ici
    __table_args__ = (
        UniqueConstraint("student_id", "exercise_id", "attempt_number", name="uq_progress_attempt"),
    )
