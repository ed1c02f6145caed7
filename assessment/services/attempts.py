"""
Attempt state machine

Class quizzes go through start -> submit, with at most one attempt per
learner. Battle quizzes are submitted in a single call and may be retaken.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assessment.core.exceptions import (
    AuthorizationException,
    ConflictException,
    InvalidStateException,
    NotFoundException,
    OutOfWindowException,
    ValidationException,
)
from assessment.core.logging import LoggerFactory
from assessment.core.security import Principal
from assessment.models.attempt import FINALIZED_STATUSES, Attempt, AttemptStatus
from assessment.models.quiz import Quiz, QuizStatus, QuizVariant
from assessment.services.grading import grade_submission, percentage_of
from assessment.services.notifications import (
    AttemptSubmittedEvent,
    LoggingNotifier,
    Notifier,
    notify_safely,
)
from assessment.services.quizzes import ensure_can_manage
from assessment.services.roster import RosterService
from assessment.utils.timeutils import ensure_utc, minutes_between, round_half_up, utcnow

logger = logging.getLogger(__name__)
audit = LoggerFactory.get_audit_logger()


def _answer_dicts(answers: Iterable) -> List[Dict[str, Any]]:
    result = []
    for answer in answers:
        if hasattr(answer, "model_dump"):
            answer = answer.model_dump()
        result.append(
            {
                "question_id": answer.get("question_id"),
                "submitted_answer": answer.get("submitted_answer"),
            }
        )
    return result


class AttemptService:
    def __init__(
        self,
        db: Session,
        roster: RosterService,
        notifier: Optional[Notifier] = None,
    ):
        self.db = db
        self.roster = roster
        self.notifier = notifier or LoggingNotifier()

    def _get_quiz(self, quiz_id: int, shared_lock: bool = False) -> Quiz:
        query = self.db.query(Quiz).filter(Quiz.id == quiz_id)
        if shared_lock:
            # FOR SHARE on PostgreSQL; conflicts with the lock question edits take
            query = query.with_for_update(read=True)
        quiz = query.first()
        if not quiz:
            raise NotFoundException("Quiz")
        return quiz

    def _authorize(self, quiz: Quiz, learner_id: int) -> None:
        if quiz.cohort_id is None:
            return
        if not self.roster.is_member(learner_id, quiz.cohort_id):
            raise AuthorizationException("You are not a member of this quiz's cohort")

    @staticmethod
    def _check_window(quiz: Quiz, now: datetime) -> None:
        if now < ensure_utc(quiz.start_time):
            raise OutOfWindowException("Quiz has not started yet")
        if now > ensure_utc(quiz.end_time) and not quiz.allow_late_submission:
            raise OutOfWindowException("Quiz has ended")

    def _class_attempt(self, quiz_id: int, learner_id: int) -> Optional[Attempt]:
        return (
            self.db.query(Attempt)
            .filter(
                Attempt.quiz_id == quiz_id,
                Attempt.learner_id == learner_id,
                Attempt.variant == QuizVariant.CLASS,
            )
            .first()
        )

    def start(self, quiz_id: int, learner_id: int, now: Optional[datetime] = None) -> Attempt:
        """Open the single attempt a learner gets at a class quiz"""
        now = ensure_utc(now) if now else utcnow()
        quiz = self._get_quiz(quiz_id, shared_lock=True)
        self._authorize(quiz, learner_id)

        if quiz.variant != QuizVariant.CLASS:
            raise InvalidStateException("Battle quizzes are submitted directly")
        # An existing attempt wins over state and window errors; the unique
        # index below still settles concurrent starts
        if self._class_attempt(quiz.id, learner_id) is not None:
            raise ConflictException("Quiz already started or submitted")
        if quiz.status != QuizStatus.ACTIVE:
            raise InvalidStateException("Quiz is not active")
        self._check_window(quiz, now)

        attempt = Attempt(
            quiz_id=quiz.id,
            learner_id=learner_id,
            variant=QuizVariant.CLASS,
            status=AttemptStatus.IN_PROGRESS,
            answers=[],
            started_at=now,
        )
        self.db.add(attempt)
        try:
            self.db.commit()
        except IntegrityError:
            # The partial unique index decides who wins a concurrent start
            self.db.rollback()
            raise ConflictException("Quiz already started or submitted")
        self.db.refresh(attempt)

        logger.info(
            "Quiz attempt started",
            extra={"quiz_id": quiz.id, "learner_id": learner_id, "attempt_id": attempt.id},
        )
        return attempt

    def submit(
        self,
        quiz_id: int,
        learner_id: int,
        answers: Iterable,
        now: Optional[datetime] = None,
    ) -> Attempt:
        """Grade and finalize a learner's in-progress class attempt"""
        now = ensure_utc(now) if now else utcnow()
        quiz = self._get_quiz(quiz_id)
        self._authorize(quiz, learner_id)

        attempt = self._class_attempt(quiz.id, learner_id)
        if attempt is None:
            raise NotFoundException(
                "Attempt", message="Quiz not started. Please start the quiz first."
            )
        if attempt.status != AttemptStatus.IN_PROGRESS:
            raise ConflictException("Quiz already submitted")

        graded = grade_submission(quiz.questions, _answer_dicts(answers))
        is_late = now > ensure_utc(quiz.end_time)

        result = self.db.execute(
            update(Attempt)
            .where(Attempt.id == attempt.id, Attempt.status == AttemptStatus.IN_PROGRESS)
            .values(
                status=AttemptStatus.LATE if is_late else AttemptStatus.GRADED,
                answers=graded.answers,
                submitted_at=now,
                total_marks_obtained=graded.total_marks_obtained,
                percentage=graded.percentage_of(quiz.total_marks),
                passed=graded.total_marks_obtained >= quiz.passing_marks,
                correct_count=graded.correct_count,
                question_count=len(quiz.questions),
                time_taken_minutes=minutes_between(attempt.started_at, now),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise ConflictException("Quiz already submitted")
        self.db.commit()
        self.db.refresh(attempt)

        logger.info(
            "Quiz attempt submitted",
            extra={
                "quiz_id": quiz.id,
                "learner_id": learner_id,
                "attempt_id": attempt.id,
                "status": attempt.status.value,
                "total_marks_obtained": attempt.total_marks_obtained,
            },
        )
        self._notify_submitted(quiz, attempt)
        return attempt

    def submit_battle(
        self,
        quiz_id: int,
        learner_id: int,
        answers: Iterable,
        time_spent: int = 0,
        now: Optional[datetime] = None,
    ) -> Tuple[Attempt, Quiz]:
        """Grade a one-shot battle attempt; every call records a new attempt"""
        now = ensure_utc(now) if now else utcnow()
        quiz = self._get_quiz(quiz_id)

        if quiz.variant != QuizVariant.BATTLE:
            raise InvalidStateException("This quiz is not part of the battle pool")
        if quiz.status != QuizStatus.ACTIVE:
            raise InvalidStateException("This quiz is not currently available")
        self._authorize(quiz, learner_id)
        self._check_window(quiz, now)

        graded = grade_submission(quiz.questions, _answer_dicts(answers))
        attempt = Attempt(
            quiz_id=quiz.id,
            learner_id=learner_id,
            variant=QuizVariant.BATTLE,
            status=AttemptStatus.GRADED,
            answers=graded.answers,
            submitted_at=now,
            total_marks_obtained=graded.total_marks_obtained,
            percentage=graded.percentage_of(quiz.total_marks),
            passed=graded.total_marks_obtained >= quiz.passing_marks,
            correct_count=graded.correct_count,
            question_count=len(quiz.questions),
            time_spent_seconds=max(int(time_spent or 0), 0),
            time_taken_minutes=round_half_up(max(int(time_spent or 0), 0) / 60),
        )
        self.db.add(attempt)
        self.db.commit()
        self.db.refresh(attempt)

        logger.info(
            "Battle attempt submitted",
            extra={
                "quiz_id": quiz.id,
                "learner_id": learner_id,
                "attempt_id": attempt.id,
                "total_marks_obtained": attempt.total_marks_obtained,
            },
        )
        self._notify_submitted(quiz, attempt)
        return attempt, quiz

    def override_result(
        self,
        quiz_id: int,
        learner_id: int,
        grader: Principal,
        marks_obtained: Optional[float] = None,
        feedback: Optional[str] = None,
    ) -> Attempt:
        """Instructor re-grade of a finalized class attempt"""
        quiz = self._get_quiz(quiz_id)
        ensure_can_manage(quiz, grader)

        attempt = self._class_attempt(quiz.id, learner_id)
        if attempt is None:
            raise NotFoundException("Attempt")
        if not attempt.is_finalized:
            raise InvalidStateException("Attempt has not been submitted yet")

        if marks_obtained is not None:
            if marks_obtained > quiz.total_marks:
                raise ValidationException(
                    "Marks cannot exceed the quiz total",
                    details={"total_marks": quiz.total_marks},
                )
            previous = attempt.total_marks_obtained
            attempt.total_marks_obtained = float(marks_obtained)
            attempt.percentage = percentage_of(attempt.total_marks_obtained, quiz.total_marks)
            attempt.passed = attempt.total_marks_obtained >= quiz.passing_marks
            attempt.is_overridden = True
            audit.info(
                "Attempt marks overridden",
                extra={
                    "quiz_id": quiz.id,
                    "learner_id": learner_id,
                    "from_marks": previous,
                    "to_marks": attempt.total_marks_obtained,
                    "graded_by": grader.user_id,
                },
            )
        if feedback is not None:
            attempt.feedback = feedback
        attempt.status = AttemptStatus.GRADED
        attempt.graded_by = grader.user_id

        self.db.commit()
        self.db.refresh(attempt)
        return attempt

    def regrade(self, quiz_id: int, principal: Principal) -> int:
        """Re-run grading over stored answers; overridden attempts are left alone"""
        quiz = self._get_quiz(quiz_id)
        ensure_can_manage(quiz, principal)

        attempts = (
            self.db.query(Attempt)
            .filter(
                Attempt.quiz_id == quiz.id,
                Attempt.status.in_(FINALIZED_STATUSES),
                Attempt.is_overridden == False,
            )
            .all()
        )
        for attempt in attempts:
            graded = grade_submission(quiz.questions, _answer_dicts(attempt.answers or []))
            attempt.answers = graded.answers
            attempt.total_marks_obtained = graded.total_marks_obtained
            attempt.correct_count = graded.correct_count
            attempt.percentage = graded.percentage_of(quiz.total_marks)
            attempt.passed = graded.total_marks_obtained >= quiz.passing_marks
        self.db.commit()

        audit.info(
            "Quiz regraded",
            extra={"quiz_id": quiz.id, "attempts": len(attempts), "requested_by": principal.user_id},
        )
        return len(attempts)

    def get_attempt(self, attempt_id: int, principal: Principal) -> Attempt:
        attempt = self.db.query(Attempt).filter(Attempt.id == attempt_id).first()
        if not attempt:
            raise NotFoundException("Attempt")
        if attempt.learner_id != principal.user_id:
            ensure_can_manage(attempt.quiz, principal)
        return attempt

    def my_submissions(self, learner_id: int) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(Attempt, Quiz)
            .join(Quiz, Attempt.quiz_id == Quiz.id)
            .filter(
                Attempt.learner_id == learner_id,
                Attempt.variant == QuizVariant.CLASS,
                Attempt.status.in_(FINALIZED_STATUSES),
            )
            .order_by(Attempt.submitted_at.desc(), Attempt.id.desc())
            .all()
        )
        return [
            {
                "attempt_id": attempt.id,
                "quiz_id": quiz.id,
                "quiz_name": quiz.name,
                "quiz_total_marks": quiz.total_marks,
                "total_marks": attempt.total_marks_obtained,
                "percentage": attempt.percentage,
                "passed": attempt.passed,
                "time_taken": attempt.time_taken_minutes,
                "submitted_at": attempt.submitted_at,
                "status": attempt.status.value,
                "feedback": attempt.feedback,
            }
            for attempt, quiz in rows
        ]

    def my_attempts(
        self,
        learner_id: int,
        variant: QuizVariant = QuizVariant.BATTLE,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Attempt]:
        return (
            self.db.query(Attempt)
            .filter(Attempt.learner_id == learner_id, Attempt.variant == variant)
            .order_by(Attempt.submitted_at.desc(), Attempt.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def my_stats(self, learner_id: int) -> Dict[str, Any]:
        """Aggregate battle performance for one learner"""
        attempts = (
            self.db.query(Attempt)
            .filter(
                Attempt.learner_id == learner_id,
                Attempt.variant == QuizVariant.BATTLE,
                Attempt.status.in_(FINALIZED_STATUSES),
            )
            .all()
        )
        total_attempts = len(attempts)
        total_points = sum(a.total_marks_obtained for a in attempts)
        total_correct = sum(a.correct_count for a in attempts)
        total_questions = sum(a.question_count for a in attempts)

        win_rate = total_correct / total_questions * 100 if total_questions else 0.0
        average_score = total_points / total_attempts if total_attempts else 0.0
        return {
            "total_attempts": total_attempts,
            "total_points": total_points,
            "total_correct_answers": total_correct,
            "total_questions": total_questions,
            "win_rate": round(win_rate, 2),
            "average_score": round(average_score, 2),
        }

    def quiz_results(self, quiz_id: int, principal: Principal) -> Dict[str, Any]:
        """Per-learner results of a quiz plus summary stats, for its author"""
        quiz = self._get_quiz(quiz_id)
        ensure_can_manage(quiz, principal)

        attempts = (
            self.db.query(Attempt)
            .filter(Attempt.quiz_id == quiz.id, Attempt.status.in_(FINALIZED_STATUSES))
            .order_by(Attempt.total_marks_obtained.desc(), Attempt.learner_id)
            .all()
        )
        results = [
            {
                "learner_id": a.learner_id,
                "total_marks": a.total_marks_obtained,
                "percentage": a.percentage,
                "passed": a.passed,
                "time_taken": a.time_taken_minutes,
                "submitted_at": a.submitted_at,
                "status": a.status.value,
                "feedback": a.feedback,
            }
            for a in attempts
        ]
        passed_count = sum(1 for a in attempts if a.passed)
        average = (
            sum(a.total_marks_obtained for a in attempts) / len(attempts) if attempts else 0.0
        )
        return {
            "quiz": {
                "id": quiz.id,
                "name": quiz.name,
                "total_marks": quiz.total_marks,
                "passing_marks": quiz.passing_marks,
            },
            "results": results,
            "stats": {
                "total_submissions": len(attempts),
                "average_score": round(average, 2),
                "passed_count": passed_count,
                "failed_count": len(attempts) - passed_count,
            },
        }

    def _notify_submitted(self, quiz: Quiz, attempt: Attempt) -> None:
        notify_safely(
            self.notifier,
            "attempt_submitted",
            AttemptSubmittedEvent(
                quiz_id=quiz.id,
                quiz_name=quiz.name,
                author_id=quiz.author_id,
                learner_id=attempt.learner_id,
                attempt_id=attempt.id,
                status=attempt.status.value,
                total_marks_obtained=attempt.total_marks_obtained,
                percentage=attempt.percentage,
                passed=attempt.passed,
                submitted_at=ensure_utc(attempt.submitted_at),
            ),
        )
