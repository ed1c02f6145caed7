"""
Quiz endpoints
Authoring for teachers, the start/submit flow for students
"""

from datetime import datetime
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query, Response, status

from assessment.api.deps import get_attempt_service, get_quiz_service
from assessment.core.security import (
    ADMIN,
    STUDENT,
    TEACHER,
    Principal,
    get_current_principal,
    require_roles,
)
from assessment.models.quiz import QuizStatus, QuizVariant
from assessment.schemas.attempt import (
    AttemptResponse,
    OverrideRequest,
    QuizResults,
    RegradeResponse,
    StartResponse,
    SubmissionSummary,
    SubmitRequest,
    SubmitResponse,
)
from assessment.schemas.quiz import (
    LearnerQuizView,
    QuizCreate,
    QuizResponse,
    QuizStatusChange,
    QuizSummary,
    QuizUpdate,
)
from assessment.services.attempts import AttemptService
from assessment.services.quizzes import (
    LEARNER_VISIBLE_STATUSES,
    QuizService,
    ensure_can_manage,
)

router = APIRouter()

authors = require_roles(TEACHER, ADMIN)
students = require_roles(STUDENT)


@router.post("", response_model=QuizResponse, status_code=status.HTTP_201_CREATED)
async def create_quiz(
    quiz_create: QuizCreate,
    principal: Principal = Depends(authors),
    quizzes: QuizService = Depends(get_quiz_service),
):
    """Create a quiz (teachers and admins only)"""
    return quizzes.create_quiz(quiz_create, principal)


@router.get("", response_model=List[QuizSummary])
async def list_quizzes(
    status_filter: Optional[QuizStatus] = Query(None, alias="status"),
    cohort_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    variant: Optional[QuizVariant] = None,
    start_from: Optional[datetime] = None,
    start_until: Optional[datetime] = None,
    mine: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    quizzes: QuizService = Depends(get_quiz_service),
):
    """
    List quizzes

    Teachers only see their own quizzes and admins see everything unless
    ``mine`` is set. Students see published quizzes of their cohorts plus
    global ones.
    """
    author_id = None
    cohort_ids = None
    if principal.role == TEACHER or (principal.is_admin and mine):
        author_id = principal.user_id
    if principal.role == STUDENT:
        if status_filter not in LEARNER_VISIBLE_STATUSES:
            status_filter = QuizStatus.ACTIVE
        cohort_ids = quizzes.roster.cohorts_of(principal.user_id)
    return quizzes.list_quizzes(
        status=status_filter,
        cohort_id=cohort_id,
        variant=variant,
        author_id=author_id,
        subject_id=subject_id,
        start_from=start_from,
        start_until=start_until,
        cohort_ids=cohort_ids,
        skip=skip,
        limit=limit,
    )


@router.get("/my-submissions", response_model=List[SubmissionSummary])
async def my_submissions(
    principal: Principal = Depends(students),
    attempts: AttemptService = Depends(get_attempt_service),
):
    """Finalized class-quiz submissions of the calling student"""
    return attempts.my_submissions(principal.user_id)


@router.get("/attempts/{attempt_id}", response_model=AttemptResponse)
async def get_attempt(
    attempt_id: int,
    principal: Principal = Depends(get_current_principal),
    attempts: AttemptService = Depends(get_attempt_service),
):
    """Single attempt, for its learner or the quiz author"""
    return attempts.get_attempt(attempt_id, principal)


@router.get("/{quiz_id}", response_model=Union[QuizResponse, LearnerQuizView])
async def get_quiz(
    quiz_id: int,
    principal: Principal = Depends(get_current_principal),
    quizzes: QuizService = Depends(get_quiz_service),
):
    """
    Get a quiz

    Authors and admins get the full definition. Students get the learner
    view, where answers stay hidden until their attempt is submitted.
    """
    if principal.role == STUDENT:
        return quizzes.learner_view(quiz_id, principal.user_id)

    quiz = quizzes.get_quiz(quiz_id)
    ensure_can_manage(quiz, principal)
    return QuizResponse.model_validate(quiz)


@router.put("/{quiz_id}", response_model=QuizResponse)
async def update_quiz(
    quiz_id: int,
    quiz_update: QuizUpdate,
    principal: Principal = Depends(authors),
    quizzes: QuizService = Depends(get_quiz_service),
):
    """Update a quiz; the question list is frozen once attempts exist"""
    return quizzes.update_quiz(quiz_id, quiz_update, principal)


@router.post("/{quiz_id}/status", response_model=QuizResponse)
async def change_quiz_status(
    quiz_id: int,
    change: QuizStatusChange,
    principal: Principal = Depends(authors),
    quizzes: QuizService = Depends(get_quiz_service),
):
    return quizzes.change_status(quiz_id, change.status, principal)


@router.delete("/{quiz_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quiz(
    quiz_id: int,
    principal: Principal = Depends(authors),
    quizzes: QuizService = Depends(get_quiz_service),
):
    quizzes.delete_quiz(quiz_id, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{quiz_id}/start", response_model=StartResponse)
async def start_quiz(
    quiz_id: int,
    principal: Principal = Depends(students),
    attempts: AttemptService = Depends(get_attempt_service),
):
    """Start the single attempt a student gets at a class quiz"""
    attempt = attempts.start(quiz_id, principal.user_id)
    return StartResponse(
        quiz_id=quiz_id,
        started_at=attempt.started_at,
        duration_minutes=attempt.quiz.duration_minutes,
    )


@router.post("/{quiz_id}/submit", response_model=SubmitResponse)
async def submit_quiz(
    quiz_id: int,
    submission: SubmitRequest,
    principal: Principal = Depends(students),
    attempts: AttemptService = Depends(get_attempt_service),
):
    """Submit answers for grading"""
    attempt = attempts.submit(quiz_id, principal.user_id, submission.answers)
    return SubmitResponse(
        total_marks=attempt.total_marks_obtained,
        percentage=attempt.percentage,
        passed=attempt.passed,
        time_taken=attempt.time_taken_minutes,
        status=attempt.status.value,
    )


@router.get("/{quiz_id}/results", response_model=QuizResults)
async def get_quiz_results(
    quiz_id: int,
    principal: Principal = Depends(authors),
    attempts: AttemptService = Depends(get_attempt_service),
):
    """Results of every learner plus summary stats (quiz author only)"""
    return attempts.quiz_results(quiz_id, principal)


@router.patch("/{quiz_id}/attempts/{learner_id}", response_model=AttemptResponse)
async def override_result(
    quiz_id: int,
    learner_id: int,
    override: OverrideRequest,
    principal: Principal = Depends(authors),
    attempts: AttemptService = Depends(get_attempt_service),
):
    """Manually grade a submitted attempt"""
    return attempts.override_result(
        quiz_id,
        learner_id,
        principal,
        marks_obtained=override.marks_obtained,
        feedback=override.feedback,
    )


@router.post("/{quiz_id}/regrade", response_model=RegradeResponse)
async def regrade_quiz(
    quiz_id: int,
    principal: Principal = Depends(authors),
    attempts: AttemptService = Depends(get_attempt_service),
):
    regraded = attempts.regrade(quiz_id, principal)
    return RegradeResponse(quiz_id=quiz_id, regraded=regraded)
