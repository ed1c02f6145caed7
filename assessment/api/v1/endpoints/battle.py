"""
Battle endpoints
Repeatable single-shot quizzes that feed the cohort leaderboard
"""

from typing import List

from fastapi import APIRouter, Depends, Query, status

from assessment.api.deps import get_attempt_service, get_quiz_service
from assessment.core.exceptions import InvalidStateException
from assessment.core.security import STUDENT, Principal, get_current_principal, require_roles
from assessment.models.quiz import QuizStatus, QuizVariant
from assessment.schemas.attempt import (
    AttemptResponse,
    BattleStats,
    BattleSubmitRequest,
    BattleSubmitResponse,
)
from assessment.schemas.quiz import LearnerQuizView, QuizSummary
from assessment.services.attempts import AttemptService
from assessment.services.quizzes import QuizService, build_learner_view

router = APIRouter()

students = require_roles(STUDENT)


@router.get("/quizzes", response_model=List[QuizSummary])
async def list_battle_quizzes(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    principal: Principal = Depends(get_current_principal),
    quizzes: QuizService = Depends(get_quiz_service),
):
    """Active quizzes in the battle pool; students only see their cohorts' and global ones"""
    cohort_ids = None
    if principal.role == STUDENT:
        cohort_ids = quizzes.roster.cohorts_of(principal.user_id)
    return quizzes.list_quizzes(
        status=QuizStatus.ACTIVE,
        variant=QuizVariant.BATTLE,
        cohort_ids=cohort_ids,
        skip=skip,
        limit=limit,
    )


@router.get("/quizzes/{quiz_id}", response_model=LearnerQuizView)
async def get_battle_quiz(
    quiz_id: int,
    principal: Principal = Depends(get_current_principal),
    quizzes: QuizService = Depends(get_quiz_service),
):
    view = quizzes.learner_view(quiz_id, principal.user_id)
    if view.variant != QuizVariant.BATTLE:
        raise InvalidStateException("This quiz is not part of the battle pool")
    return view


@router.post(
    "/quizzes/{quiz_id}/submit",
    response_model=BattleSubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_battle_quiz(
    quiz_id: int,
    submission: BattleSubmitRequest,
    principal: Principal = Depends(students),
    attempts: AttemptService = Depends(get_attempt_service),
):
    """Grade a battle attempt and return it with the answers revealed"""
    attempt, quiz = attempts.submit_battle(
        quiz_id, principal.user_id, submission.answers, time_spent=submission.time_spent
    )
    return BattleSubmitResponse(
        attempt_id=attempt.id,
        score=attempt.total_marks_obtained,
        total_marks=quiz.total_marks,
        correct_answers=attempt.correct_count,
        total_questions=attempt.question_count,
        percentage=attempt.percentage,
        passed=attempt.passed,
        status=attempt.status.value,
        answers=attempt.answers,
        quiz=build_learner_view(quiz, principal.user_id, reveal=True),
    )


@router.get("/my-attempts", response_model=List[AttemptResponse])
async def my_battle_attempts(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    principal: Principal = Depends(students),
    attempts: AttemptService = Depends(get_attempt_service),
):
    return attempts.my_attempts(principal.user_id, QuizVariant.BATTLE, skip=skip, limit=limit)


@router.get("/my-stats", response_model=BattleStats)
async def my_battle_stats(
    principal: Principal = Depends(students),
    attempts: AttemptService = Depends(get_attempt_service),
):
    return attempts.my_stats(principal.user_id)
