"""
Request-scoped dependencies shared by the v1 endpoints
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from assessment.core.database import get_db
from assessment.services.attempts import AttemptService
from assessment.services.leaderboard import LeaderboardService
from assessment.services.notifications import Notifier, build_notifier
from assessment.services.quizzes import QuizService
from assessment.services.roster import RosterService, SQLRosterService


@lru_cache
def _default_notifier() -> Notifier:
    return build_notifier()


def get_notifier() -> Notifier:
    return _default_notifier()


def get_roster(db: Session = Depends(get_db)) -> RosterService:
    return SQLRosterService(db)


def get_quiz_service(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    roster: RosterService = Depends(get_roster),
) -> QuizService:
    return QuizService(db, notifier=notifier, roster=roster)


def get_attempt_service(
    db: Session = Depends(get_db),
    roster: RosterService = Depends(get_roster),
    notifier: Notifier = Depends(get_notifier),
) -> AttemptService:
    return AttemptService(db, roster=roster, notifier=notifier)


def get_leaderboard_service(
    db: Session = Depends(get_db),
    roster: RosterService = Depends(get_roster),
) -> LeaderboardService:
    return LeaderboardService(db, roster)
