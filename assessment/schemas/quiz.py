"""
Quiz schemas for the Assessment Engine
"""

from pydantic import AfterValidator, BaseModel, Field
from typing import Annotated, Optional, List
from datetime import datetime
from assessment.models.quiz import QuestionKind, QuizStatus, QuizVariant
from assessment.utils.timeutils import ensure_utc

UTCDateTime = Annotated[datetime, AfterValidator(ensure_utc)]


class OptionIn(BaseModel):
    """Answer option of a choice question"""
    text: str
    is_correct: bool = False


class QuestionCreate(BaseModel):
    """Question authoring schema; domain rules are checked by the question bank"""
    text: str
    kind: str = "multiple-choice"
    options: List[OptionIn] = []
    correct_answer: Optional[str] = None
    marks: float
    explanation: Optional[str] = None


class QuestionResponse(BaseModel):
    """Question as seen by its author"""
    id: int
    position: int
    text: str
    kind: QuestionKind
    options: List[OptionIn]
    correct_answer: Optional[str]
    marks: float
    explanation: Optional[str]

    class Config:
        from_attributes = True


class QuizBase(BaseModel):
    """Base quiz schema"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    duration_minutes: int = Field(..., ge=1)
    passing_marks: float = Field(0.0, ge=0)
    start_time: UTCDateTime
    end_time: UTCDateTime
    allow_late_submission: bool = False
    shuffle_questions: bool = False
    reveal_answers_after_submit: bool = True


class QuizCreate(QuizBase):
    """Quiz creation schema"""
    variant: QuizVariant = QuizVariant.CLASS
    cohort_id: Optional[int] = None
    subject_id: Optional[int] = None
    questions: List[QuestionCreate] = []
    status: QuizStatus = QuizStatus.DRAFT


class QuizUpdate(BaseModel):
    """Partial quiz update; a questions list replaces the whole set

    Only description and subject_id may be cleared with an explicit null.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    subject_id: Optional[int] = None
    questions: Optional[List[QuestionCreate]] = None
    duration_minutes: Optional[int] = Field(None, ge=1)
    passing_marks: Optional[float] = Field(None, ge=0)
    start_time: Optional[UTCDateTime] = None
    end_time: Optional[UTCDateTime] = None
    allow_late_submission: Optional[bool] = None
    shuffle_questions: Optional[bool] = None
    reveal_answers_after_submit: Optional[bool] = None


class QuizStatusChange(BaseModel):
    status: QuizStatus


class QuizSummary(BaseModel):
    """Quiz without its questions, for listings"""
    id: int
    name: str
    description: Optional[str]
    variant: QuizVariant
    author_id: int
    cohort_id: Optional[int]
    subject_id: Optional[int] = None
    duration_minutes: int
    total_marks: float
    passing_marks: float
    start_time: UTCDateTime
    end_time: UTCDateTime
    allow_late_submission: bool
    shuffle_questions: bool
    reveal_answers_after_submit: bool
    status: QuizStatus
    question_count: int = 0
    submission_count: int = 0
    created_at: Optional[UTCDateTime] = None
    updated_at: Optional[UTCDateTime] = None

    class Config:
        from_attributes = True


class QuizResponse(QuizSummary):
    """Full quiz as seen by its author"""
    questions: List[QuestionResponse] = []


class LearnerOption(BaseModel):
    text: str
    is_correct: Optional[bool] = None


class LearnerQuestion(BaseModel):
    """Question as seen by a learner; answers only once revealed"""
    id: int
    text: str
    kind: str
    options: List[LearnerOption] = []
    marks: float
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None


class LearnerQuizView(BaseModel):
    id: int
    name: str
    description: Optional[str]
    variant: QuizVariant
    duration_minutes: int
    total_marks: float
    passing_marks: float
    start_time: UTCDateTime
    end_time: UTCDateTime
    status: QuizStatus
    answers_revealed: bool
    questions: List[LearnerQuestion]
    attempt_status: Optional[str] = None
