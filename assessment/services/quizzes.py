"""Quiz authoring and lifecycle"""

import logging
import random
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from assessment.core.exceptions import (
    AuthorizationException,
    ConflictException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from assessment.core.logging import LoggerFactory
from assessment.core.security import Principal
from assessment.models.attempt import FINALIZED_STATUSES, Attempt
from assessment.models.quiz import QuestionKind, Quiz, QuizStatus, QuizVariant
from assessment.schemas.quiz import (
    LearnerOption,
    LearnerQuestion,
    LearnerQuizView,
    QuizCreate,
    QuizUpdate,
)
from assessment.services.notifications import (
    LoggingNotifier,
    Notifier,
    QuizPublishedEvent,
    notify_safely,
)
from assessment.services.question_bank import build_questions, validate_questions
from assessment.services.roster import RosterService
from assessment.utils.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)
audit = LoggerFactory.get_audit_logger()

ALLOWED_TRANSITIONS: Dict[QuizStatus, FrozenSet[QuizStatus]] = {
    QuizStatus.DRAFT: frozenset({QuizStatus.ACTIVE, QuizStatus.CANCELLED}),
    QuizStatus.ACTIVE: frozenset({QuizStatus.COMPLETED, QuizStatus.CANCELLED}),
    QuizStatus.COMPLETED: frozenset(),
    QuizStatus.CANCELLED: frozenset(),
}

LEARNER_VISIBLE_STATUSES = (QuizStatus.ACTIVE, QuizStatus.COMPLETED)

# Nullable columns an update may reset to null
CLEARABLE_FIELDS = frozenset({"description", "subject_id"})


def ensure_can_manage(quiz: Quiz, principal: Principal) -> None:
    """Only the quiz author or an admin may manage a quiz"""
    if principal.is_admin or quiz.author_id == principal.user_id:
        return
    raise AuthorizationException("Access denied")


def _validate_window(start_time: datetime, end_time: datetime) -> None:
    if ensure_utc(end_time) <= ensure_utc(start_time):
        raise ValidationException("End date must be after start date")


def build_learner_view(
    quiz: Quiz,
    learner_id: int,
    reveal: bool = False,
    attempt_status: Optional[str] = None,
) -> LearnerQuizView:
    """
    Render a quiz for one learner

    Correctness flags, the expected short answer and explanations are only
    included when ``reveal`` is set. With ``shuffle_questions`` on, the order
    is shuffled with a seed derived from the quiz and learner so a learner
    always sees the same order.
    """
    questions = list(quiz.questions)
    if quiz.shuffle_questions:
        random.Random(f"{quiz.id}:{learner_id}").shuffle(questions)

    rendered = []
    for question in questions:
        kind = QuestionKind(question.kind)
        rendered.append(
            LearnerQuestion(
                id=question.id,
                text=question.text,
                kind=kind.value,
                options=[
                    LearnerOption(
                        text=option["text"],
                        is_correct=bool(option.get("is_correct")) if reveal else None,
                    )
                    for option in question.options or []
                ],
                marks=question.marks,
                correct_answer=question.correct_answer if reveal else None,
                explanation=question.explanation if reveal else None,
            )
        )

    return LearnerQuizView(
        id=quiz.id,
        name=quiz.name,
        description=quiz.description,
        variant=quiz.variant,
        duration_minutes=quiz.duration_minutes,
        total_marks=quiz.total_marks,
        passing_marks=quiz.passing_marks,
        start_time=quiz.start_time,
        end_time=quiz.end_time,
        status=quiz.status,
        answers_revealed=reveal,
        questions=rendered,
        attempt_status=attempt_status,
    )


class QuizService:
    def __init__(
        self,
        db: Session,
        notifier: Optional[Notifier] = None,
        roster: Optional[RosterService] = None,
    ):
        self.db = db
        self.notifier = notifier or LoggingNotifier()
        self.roster = roster

    def get_quiz(self, quiz_id: int, lock: bool = False) -> Quiz:
        query = self.db.query(Quiz).filter(Quiz.id == quiz_id)
        if lock:
            # Serializes question edits against attempt creation on PostgreSQL
            query = query.with_for_update()
        quiz = query.first()
        if not quiz:
            raise NotFoundException("Quiz")
        return quiz

    def has_attempts(self, quiz_id: int) -> bool:
        return self.db.query(Attempt.id).filter(Attempt.quiz_id == quiz_id).first() is not None

    def list_quizzes(
        self,
        status: Optional[QuizStatus] = None,
        cohort_id: Optional[int] = None,
        variant: Optional[QuizVariant] = None,
        author_id: Optional[int] = None,
        subject_id: Optional[int] = None,
        start_from: Optional[datetime] = None,
        start_until: Optional[datetime] = None,
        cohort_ids: Optional[Iterable[int]] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Quiz]:
        """
        List quizzes, newest window first

        ``start_from`` and ``start_until`` bound ``start_time`` inclusively.
        ``cohort_ids`` keeps global quizzes plus those of the given cohorts.
        Each quiz gets a ``submission_count`` of its finalized attempts.
        """
        query = self.db.query(Quiz)
        if status:
            query = query.filter(Quiz.status == status)
        if cohort_id is not None:
            query = query.filter(Quiz.cohort_id == cohort_id)
        if cohort_ids is not None:
            query = query.filter(
                or_(Quiz.cohort_id.is_(None), Quiz.cohort_id.in_(list(cohort_ids)))
            )
        if variant:
            query = query.filter(Quiz.variant == variant)
        if author_id is not None:
            query = query.filter(Quiz.author_id == author_id)
        if subject_id is not None:
            query = query.filter(Quiz.subject_id == subject_id)
        if start_from is not None:
            query = query.filter(Quiz.start_time >= ensure_utc(start_from))
        if start_until is not None:
            query = query.filter(Quiz.start_time <= ensure_utc(start_until))

        quizzes = (
            query.order_by(Quiz.start_time.desc(), Quiz.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        if quizzes:
            counts = dict(
                self.db.query(Attempt.quiz_id, func.count(Attempt.id))
                .filter(
                    Attempt.quiz_id.in_([q.id for q in quizzes]),
                    Attempt.status.in_(FINALIZED_STATUSES),
                )
                .group_by(Attempt.quiz_id)
                .all()
            )
            for quiz in quizzes:
                quiz.submission_count = counts.get(quiz.id, 0)
        return quizzes

    def create_quiz(
        self, data: QuizCreate, author: Principal, now: Optional[datetime] = None
    ) -> Quiz:
        _validate_window(data.start_time, data.end_time)
        if data.variant == QuizVariant.CLASS and data.cohort_id is None:
            raise ValidationException("Class quizzes must belong to a cohort")
        if data.status not in (QuizStatus.DRAFT, QuizStatus.ACTIVE):
            raise ValidationException("New quizzes start as draft or active")

        payloads = validate_questions(data.questions)

        quiz = Quiz(
            name=data.name.strip(),
            description=data.description,
            variant=data.variant,
            author_id=author.user_id,
            cohort_id=data.cohort_id,
            subject_id=data.subject_id,
            duration_minutes=data.duration_minutes,
            passing_marks=data.passing_marks,
            start_time=data.start_time,
            end_time=data.end_time,
            allow_late_submission=data.allow_late_submission,
            shuffle_questions=data.shuffle_questions,
            reveal_answers_after_submit=data.reveal_answers_after_submit,
            status=QuizStatus.DRAFT,
        )
        quiz.questions = build_questions(payloads)
        quiz.recompute_total_marks()

        if data.status == QuizStatus.ACTIVE:
            self._check_activation(quiz, now or utcnow())
            quiz.status = QuizStatus.ACTIVE

        self.db.add(quiz)
        self.db.commit()
        self.db.refresh(quiz)

        audit.info(
            "Quiz created",
            extra={"quiz_id": quiz.id, "author_id": author.user_id, "status": quiz.status.value},
        )
        if quiz.status == QuizStatus.ACTIVE:
            self._announce(quiz)
        return quiz

    def update_quiz(
        self, quiz_id: int, data: QuizUpdate, principal: Principal
    ) -> Quiz:
        quiz = self.get_quiz(quiz_id, lock=True)
        ensure_can_manage(quiz, principal)

        changes = data.model_dump(exclude_unset=True)
        cleared = sorted(
            key for key, value in changes.items() if value is None and key not in CLEARABLE_FIELDS
        )
        if cleared:
            self.db.rollback()
            raise ValidationException(
                "These fields cannot be cleared", details={"fields": cleared}
            )

        questions = changes.pop("questions", None)
        if questions is not None:
            if self.has_attempts(quiz.id):
                self.db.rollback()
                raise ConflictException("Cannot change questions of a quiz that has attempts")
            payloads = validate_questions(questions)
            quiz.questions = build_questions(payloads)
            quiz.recompute_total_marks()

        start_time = changes.get("start_time", quiz.start_time)
        end_time = changes.get("end_time", quiz.end_time)
        if "start_time" in changes or "end_time" in changes:
            _validate_window(start_time, end_time)

        for field, value in changes.items():
            setattr(quiz, field, value)
        quiz.updated_by = principal.user_id

        regraded = 0
        if "passing_marks" in changes:
            regraded = self._refresh_pass_flags(quiz)

        self.db.commit()
        self.db.refresh(quiz)

        audit.info(
            "Quiz updated",
            extra={
                "quiz_id": quiz.id,
                "updated_by": principal.user_id,
                "fields": sorted(changes) + (["questions"] if questions is not None else []),
                "pass_flags_changed": regraded,
            },
        )
        return quiz

    def _refresh_pass_flags(self, quiz: Quiz) -> int:
        """Re-derive ``passed`` of finalized attempts after a pass mark change"""
        changed = 0
        attempts = (
            self.db.query(Attempt)
            .filter(Attempt.quiz_id == quiz.id, Attempt.status.in_(FINALIZED_STATUSES))
            .all()
        )
        for attempt in attempts:
            passed = attempt.total_marks_obtained >= quiz.passing_marks
            if attempt.passed != passed:
                attempt.passed = passed
                changed += 1
        return changed

    def change_status(
        self,
        quiz_id: int,
        new_status: QuizStatus,
        principal: Principal,
        now: Optional[datetime] = None,
    ) -> Quiz:
        quiz = self.get_quiz(quiz_id, lock=True)
        ensure_can_manage(quiz, principal)

        current = QuizStatus(quiz.status)
        if new_status not in ALLOWED_TRANSITIONS[current]:
            self.db.rollback()
            raise InvalidStateException(
                f"Cannot move quiz from {current.value} to {new_status.value}"
            )
        if new_status == QuizStatus.ACTIVE:
            self._check_activation(quiz, now or utcnow())

        quiz.status = new_status
        quiz.updated_by = principal.user_id
        self.db.commit()
        self.db.refresh(quiz)

        audit.info(
            "Quiz status changed",
            extra={
                "quiz_id": quiz.id,
                "from_status": current.value,
                "to_status": new_status.value,
                "changed_by": principal.user_id,
            },
        )
        if new_status == QuizStatus.ACTIVE:
            self._announce(quiz)
        return quiz

    def delete_quiz(self, quiz_id: int, principal: Principal) -> None:
        quiz = self.get_quiz(quiz_id, lock=True)
        ensure_can_manage(quiz, principal)
        if self.has_attempts(quiz.id):
            self.db.rollback()
            raise ConflictException("Cannot delete a quiz that has attempts")

        self.db.delete(quiz)
        self.db.commit()
        audit.info("Quiz deleted", extra={"quiz_id": quiz_id, "deleted_by": principal.user_id})

    def learner_view(self, quiz_id: int, learner_id: int) -> LearnerQuizView:
        """Quiz as a learner may see it, with answers hidden until revealed"""
        quiz = self.get_quiz(quiz_id)
        if quiz.status not in LEARNER_VISIBLE_STATUSES:
            raise NotFoundException("Quiz")
        if (
            quiz.cohort_id is not None
            and self.roster is not None
            and not self.roster.is_member(learner_id, quiz.cohort_id)
        ):
            raise AuthorizationException("You are not a member of this quiz's cohort")

        attempt = None
        if quiz.variant == QuizVariant.CLASS:
            attempt = (
                self.db.query(Attempt)
                .filter(Attempt.quiz_id == quiz.id, Attempt.learner_id == learner_id)
                .first()
            )
        reveal = bool(
            quiz.reveal_answers_after_submit and attempt is not None and attempt.is_finalized
        )
        return build_learner_view(
            quiz,
            learner_id,
            reveal=reveal,
            attempt_status=attempt.status.value if attempt is not None else None,
        )

    def _check_activation(self, quiz: Quiz, now: datetime) -> None:
        if not quiz.questions:
            raise ValidationException("Quiz must have at least one question")
        if ensure_utc(quiz.end_time) <= ensure_utc(now):
            raise ValidationException("Quiz window has already ended")

    def _announce(self, quiz: Quiz) -> None:
        notify_safely(
            self.notifier,
            "quiz_published",
            QuizPublishedEvent(
                quiz_id=quiz.id,
                quiz_name=quiz.name,
                author_id=quiz.author_id,
                cohort_id=quiz.cohort_id,
                start_time=ensure_utc(quiz.start_time),
                end_time=ensure_utc(quiz.end_time),
            ),
        )
