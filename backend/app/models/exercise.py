"""
Modèle SQLAlchemy pour les exercices (QCM et textes à trous).

Les questions sont stockées en JSON :
- qcm_questions        : [{question_text, options: [{id, text, is_correct}], points, explanation}]
- fill_blank_questions : [{sentence, blanks: [{position, correct_answer}], points, hint}]
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, String, func
from sqlalchemy.dialects.postgresql import JSONB, UUID

from app.database import Base


class Exercise(Base):
    __tablename__ = "exercises"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    type = Column(String(20), nullable=False)  # qcm, fill_blanks
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id"), nullable=False)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    created_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)
    difficulty = Column(String(10), default="medium", nullable=False)  # easy, medium, hard
    is_active = Column(Boolean, default=True, nullable=False)

    qcm_questions = Column(JSONB, nullable=False, default=list)
    fill_blank_questions = Column(JSONB, nullable=False, default=list)
    total_points = Column(Float, nullable=False, default=0)

    # "metadata" est réservé par la déclaration SQLAlchemy
    meta = Column("metadata", JSONB, nullable=False, default=dict)
    tags = Column(JSONB, nullable=False, default=list)
    due_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
