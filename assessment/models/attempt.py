"""
Attempt models for the Assessment Engine
"""

from sqlalchemy import Column, Integer, Boolean, DateTime, Text, Float, ForeignKey, Enum, JSON, Index, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from assessment.core.database import Base
from assessment.models.quiz import QuizVariant, _enum_values
import enum


class AttemptStatus(str, enum.Enum):
    """Attempt lifecycle states"""
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"
    LATE = "late"
    GRADED = "graded"


FINALIZED_STATUSES = (AttemptStatus.SUBMITTED, AttemptStatus.LATE, AttemptStatus.GRADED)


class Attempt(Base):
    """One learner's instance of taking a quiz"""
    __tablename__ = "attempts"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False)
    learner_id = Column(Integer, nullable=False, index=True)
    variant = Column(
        Enum(QuizVariant, name="quiz_variant", values_callable=_enum_values),
        nullable=False,
    )
    status = Column(
        Enum(AttemptStatus, name="attempt_status", values_callable=_enum_values),
        nullable=False,
        default=AttemptStatus.IN_PROGRESS,
    )

    # [{"question_id", "submitted_answer", "is_correct", "marks_awarded"}]
    answers = Column(JSON, nullable=False, default=list)

    started_at = Column(DateTime(timezone=True), nullable=True)  # class variant only
    submitted_at = Column(DateTime(timezone=True), nullable=True)

    total_marks_obtained = Column(Float, nullable=False, default=0.0)
    percentage = Column(Float, nullable=False, default=0.0)
    passed = Column(Boolean, nullable=False, default=False)
    correct_count = Column(Integer, nullable=False, default=0)
    question_count = Column(Integer, nullable=False, default=0)

    time_taken_minutes = Column(Integer, nullable=False, default=0)
    time_spent_seconds = Column(Integer, nullable=True)  # reported by battle clients

    # Instructor re-grade
    feedback = Column(Text, nullable=True)
    graded_by = Column(Integer, nullable=True)
    is_overridden = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    quiz = relationship("Quiz", back_populates="attempts")

    __table_args__ = (
        # One attempt per learner for class quizzes; battle attempts repeat freely
        Index(
            "uq_attempts_class_quiz_learner",
            "quiz_id",
            "learner_id",
            unique=True,
            sqlite_where=text("variant = 'class'"),
            postgresql_where=text("variant = 'class'"),
        ),
        Index("ix_attempts_quiz_learner", "quiz_id", "learner_id"),
        Index("ix_attempts_learner_submitted", "learner_id", "submitted_at"),
    )

    @property
    def is_finalized(self) -> bool:
        return self.status in FINALIZED_STATUSES
