"""
Modèle SQLAlchemy pour les notes (barème sur 20, demi-points).
"""

import uuid
from sqlalchemy import Column, DateTime, Float, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import validates

from app.database import Base
from app.services.grading import appreciation_for


class Grade(Base):
    __tablename__ = "grades"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    subject_id = Column(UUID(as_uuid=True), ForeignKey("subjects.id"), nullable=False)
    teacher_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    school_id = Column(UUID(as_uuid=True), ForeignKey("schools.id", ondelete="CASCADE"), nullable=False)

    exam_name = Column(String(150), nullable=False)
    exam_type = Column(String(20), nullable=False)      # controle, devoir, examen, test, oral, tp, autre
    grade = Column(Float, nullable=False)
    coefficient = Column(Float, nullable=False, default=1)
    exam_date = Column(DateTime, nullable=False)
    trimester = Column(String(20), nullable=False)      # 1er Trimestre, 2ème Trimestre, 3ème Trimestre
    academic_year = Column(String(20), nullable=False)
    comments = Column(String(500), nullable=True)
    appreciation = Column(String(30), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint(
            "student_id", "class_id", "subject_id", "exam_name", "exam_type", "trimester", "academic_year",
            name="uq_grades_exam",
        ),
    )

    @validates("grade")
    def _sync_appreciation(self, key, value):
        """L'appréciation suit toujours la note."""
        self.appreciation = appreciation_for(value)
        return value
