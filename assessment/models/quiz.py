"""
Quiz models for the Assessment Engine
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Float, ForeignKey, Enum, JSON, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from assessment.core.database import Base
import enum


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class QuizStatus(str, enum.Enum):
    """Quiz lifecycle states"""
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class QuizVariant(str, enum.Enum):
    """Class quizzes allow one attempt per learner; battle quizzes are repeatable"""
    CLASS = "class"
    BATTLE = "battle"


class QuestionKind(str, enum.Enum):
    """Gradable question types"""
    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"


class Quiz(Base):
    """Authored quiz definition"""
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    variant = Column(
        Enum(QuizVariant, name="quiz_variant", values_callable=_enum_values),
        nullable=False,
        default=QuizVariant.CLASS,
    )

    author_id = Column(Integer, nullable=False, index=True)
    cohort_id = Column(Integer, nullable=True, index=True)
    subject_id = Column(Integer, nullable=True, index=True)

    duration_minutes = Column(Integer, nullable=False)  # advisory only
    total_marks = Column(Float, nullable=False, default=0.0)
    passing_marks = Column(Float, nullable=False, default=0.0)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)

    allow_late_submission = Column(Boolean, nullable=False, default=False)
    shuffle_questions = Column(Boolean, nullable=False, default=False)
    reveal_answers_after_submit = Column(Boolean, nullable=False, default=True)

    status = Column(
        Enum(QuizStatus, name="quiz_status", values_callable=_enum_values),
        nullable=False,
        default=QuizStatus.DRAFT,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    updated_by = Column(Integer, nullable=True)

    # Relationships
    questions = relationship(
        "Question",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="Question.position",
    )
    attempts = relationship("Attempt", back_populates="quiz", passive_deletes=True)

    # Finalized attempts, filled in by quiz listings
    submission_count = 0

    __table_args__ = (
        Index("ix_quizzes_cohort_status", "cohort_id", "status"),
        Index("ix_quizzes_window", "start_time", "end_time"),
    )

    @property
    def question_count(self) -> int:
        return len(self.questions)

    def recompute_total_marks(self) -> float:
        self.total_marks = float(sum(q.marks for q in self.questions))
        return self.total_marks


class Question(Base):
    """Single gradable question"""
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    text = Column(Text, nullable=False)
    kind = Column(
        Enum(QuestionKind, name="question_kind", values_callable=_enum_values),
        nullable=False,
        default=QuestionKind.MULTIPLE_CHOICE,
    )
    options = Column(JSON, nullable=False, default=list)  # [{"text": str, "is_correct": bool}]
    correct_answer = Column(Text, nullable=True)  # short-answer only
    marks = Column(Float, nullable=False)
    explanation = Column(Text, nullable=True)

    # Relationships
    quiz = relationship("Quiz", back_populates="questions")
