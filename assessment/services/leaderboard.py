"""Cohort leaderboard aggregation"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from assessment.core.exceptions import NotFoundException
from assessment.models.attempt import FINALIZED_STATUSES, Attempt
from assessment.models.quiz import QuizVariant
from assessment.services.roster import RosterService
from assessment.utils.timeutils import round_half_up

logger = logging.getLogger(__name__)


@dataclass
class LearnerTally:
    """Mutable per-learner totals used while aggregating"""

    learner_id: int
    total_points: float = 0.0
    total_correct_answers: int = 0
    total_questions_answered: int = 0
    attempt_count: int = 0

    def add(self, attempt) -> None:
        self.total_points += attempt.total_marks_obtained or 0.0
        self.total_correct_answers += attempt.correct_count or 0
        self.total_questions_answered += attempt.question_count or 0
        self.attempt_count += 1

    @property
    def win_rate(self) -> float:
        if not self.total_questions_answered:
            return 0.0
        return round(self.total_correct_answers / self.total_questions_answered * 100, 2)


@dataclass(frozen=True)
class LeaderboardRow:
    """Ranked snapshot of one learner"""

    rank: int
    learner_id: int
    total_points: float
    total_correct_answers: int
    total_questions_answered: int
    win_rate: float
    attempt_count: int
    percentile: int
    is_current_user: bool


def build_leaderboard(
    cohort_learner_ids: Iterable[int],
    attempts: Iterable,
    current_learner_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Rank every cohort member by points earned across finalized attempts

    Members without attempts are listed with zeros; attempts by anyone outside
    the cohort are ignored. Ties on points fall back to win rate, then learner
    id, so the order is stable.
    """
    tallies = {learner_id: LearnerTally(learner_id) for learner_id in cohort_learner_ids}
    for attempt in attempts:
        tally = tallies.get(attempt.learner_id)
        if tally is None or attempt.status not in FINALIZED_STATUSES:
            continue
        tally.add(attempt)

    ordered = sorted(
        tallies.values(),
        key=lambda t: (-t.total_points, -t.win_rate, t.learner_id),
    )
    total = len(ordered)

    rows = [
        LeaderboardRow(
            rank=rank,
            learner_id=tally.learner_id,
            total_points=tally.total_points,
            total_correct_answers=tally.total_correct_answers,
            total_questions_answered=tally.total_questions_answered,
            win_rate=tally.win_rate,
            attempt_count=tally.attempt_count,
            percentile=round_half_up((total - rank) / total * 100),
            is_current_user=tally.learner_id == current_learner_id,
        )
        for rank, tally in enumerate(ordered, start=1)
    ]

    mine = next((row for row in rows if row.is_current_user), None)
    current_user = {
        "rank": mine.rank if mine else None,
        "percentile": mine.percentile if mine else 0,
        "total_points": mine.total_points if mine else 0.0,
        "win_rate": mine.win_rate if mine else 0.0,
    }
    return {
        "leaderboard": [asdict(row) for row in rows],
        "current_user": current_user,
        "total_learners": total,
    }


class LeaderboardService:
    def __init__(self, db: Session, roster: RosterService):
        self.db = db
        self.roster = roster

    def cohort_leaderboard(
        self,
        cohort_id: int,
        current_learner_id: Optional[int] = None,
        quiz_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Leaderboard for one quiz, or for the whole battle pool by default"""
        learner_ids = self.roster.members(cohort_id)
        if not learner_ids:
            raise NotFoundException("Cohort", message="No learners found in this cohort")

        query = self.db.query(Attempt).filter(
            Attempt.learner_id.in_(learner_ids),
            Attempt.status.in_(FINALIZED_STATUSES),
        )
        if quiz_id is not None:
            query = query.filter(Attempt.quiz_id == quiz_id)
        else:
            query = query.filter(Attempt.variant == QuizVariant.BATTLE)

        board = build_leaderboard(learner_ids, query.all(), current_learner_id)
        logger.debug(
            "Leaderboard built",
            extra={"cohort_id": cohort_id, "quiz_id": quiz_id, "learners": len(learner_ids)},
        )
        return {"cohort_id": cohort_id, "quiz_id": quiz_id, **board}
