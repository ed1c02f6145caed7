"""Attempt schemas"""

from typing import List, Optional

from pydantic import BaseModel, Field

from assessment.models.attempt import AttemptStatus
from assessment.models.quiz import QuizVariant
from assessment.schemas.quiz import LearnerQuizView, UTCDateTime


class AnswerIn(BaseModel):
    question_id: int
    submitted_answer: Optional[str] = None


class SubmitRequest(BaseModel):
    answers: List[AnswerIn]


class BattleSubmitRequest(SubmitRequest):
    time_spent: int = Field(0, ge=0)  # seconds, reported by the client


class StartResponse(BaseModel):
    quiz_id: int
    started_at: UTCDateTime
    duration_minutes: int


class SubmitResponse(BaseModel):
    total_marks: float
    percentage: float
    passed: bool
    time_taken: int
    status: str


class AnswerRecord(BaseModel):
    question_id: Optional[int]
    submitted_answer: Optional[str]
    is_correct: bool
    marks_awarded: float


class AttemptResponse(BaseModel):
    id: int
    quiz_id: int
    learner_id: int
    variant: QuizVariant
    status: AttemptStatus
    answers: List[AnswerRecord]
    started_at: Optional[UTCDateTime]
    submitted_at: Optional[UTCDateTime]
    total_marks_obtained: float
    percentage: float
    passed: bool
    correct_count: int
    question_count: int
    time_taken_minutes: int
    time_spent_seconds: Optional[int]
    feedback: Optional[str]

    class Config:
        from_attributes = True


class SubmissionSummary(BaseModel):
    """Row of a learner's own submission history"""
    attempt_id: int
    quiz_id: int
    quiz_name: str
    quiz_total_marks: float
    total_marks: float
    percentage: float
    passed: bool
    time_taken: int
    submitted_at: Optional[UTCDateTime]
    status: str
    feedback: Optional[str]


class LearnerResult(BaseModel):
    learner_id: int
    total_marks: float
    percentage: float
    passed: bool
    time_taken: int
    submitted_at: Optional[UTCDateTime]
    status: str
    feedback: Optional[str]


class QuizResultStats(BaseModel):
    total_submissions: int
    average_score: float
    passed_count: int
    failed_count: int


class QuizResultHeader(BaseModel):
    id: int
    name: str
    total_marks: float
    passing_marks: float


class QuizResults(BaseModel):
    quiz: QuizResultHeader
    results: List[LearnerResult]
    stats: QuizResultStats


class OverrideRequest(BaseModel):
    marks_obtained: Optional[float] = Field(None, ge=0)
    feedback: Optional[str] = Field(None, max_length=2000)


class RegradeResponse(BaseModel):
    quiz_id: int
    regraded: int


class BattleSubmitResponse(BaseModel):
    attempt_id: int
    score: float
    total_marks: float
    correct_answers: int
    total_questions: int
    percentage: float
    passed: bool
    status: str
    answers: List[AnswerRecord]
    quiz: LearnerQuizView


class BattleStats(BaseModel):
    total_attempts: int
    total_points: float
    total_correct_answers: int
    total_questions: int
    win_rate: float
    average_score: float
