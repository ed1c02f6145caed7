import os

# Settings are read at import time
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("NOTIFIER_BACKEND", "log")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from assessment.core.database import build_engine, init_db
from assessment.core.security import Principal
from assessment.schemas.quiz import QuizCreate
from assessment.services.attempts import AttemptService
from assessment.services.notifications import RecordingNotifier
from assessment.services.quizzes import QuizService
from assessment.services.roster import SQLRosterService

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
COHORT = 7

TEACHER = Principal(user_id=1, role="teacher")
OTHER_TEACHER = Principal(user_id=2, role="teacher")
ADMIN = Principal(user_id=3, role="admin")
ALICE = 101
BOB = 102
MALLORY = 999  # not enrolled anywhere


def two_question_payload(**overrides):
    """Two multiple-choice questions worth 5 marks each, passing at 5"""
    data = {
        "name": "Capitals",
        "description": "European capitals",
        "variant": "class",
        "cohort_id": COHORT,
        "duration_minutes": 30,
        "passing_marks": 5,
        "start_time": NOW - timedelta(hours=1),
        "end_time": NOW + timedelta(hours=1),
        "status": "active",
        "questions": [
            {
                "text": "Capital of France?",
                "kind": "multiple-choice",
                "options": [
                    {"text": "Paris", "is_correct": True},
                    {"text": "Lyon", "is_correct": False},
                ],
                "marks": 5,
                "explanation": "Paris has been the capital since 987.",
            },
            {
                "text": "Capital of Spain?",
                "kind": "multiple-choice",
                "options": [
                    {"text": "Madrid", "is_correct": True},
                    {"text": "Seville", "is_correct": False},
                ],
                "marks": 5,
            },
        ],
    }
    data.update(overrides)
    return data


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'assessment.db'}")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def roster(db):
    roster = SQLRosterService(db)
    roster.add_member(COHORT, ALICE)
    roster.add_member(COHORT, BOB)
    return roster


@pytest.fixture
def quiz_service(db, notifier, roster):
    return QuizService(db, notifier=notifier, roster=roster)


@pytest.fixture
def attempt_service(db, notifier, roster):
    return AttemptService(db, roster=roster, notifier=notifier)


@pytest.fixture
def make_quiz(quiz_service):
    def factory(author=TEACHER, **overrides):
        return quiz_service.create_quiz(
            QuizCreate(**two_question_payload(**overrides)), author, now=NOW
        )

    return factory


@pytest.fixture
def quiz(make_quiz):
    return make_quiz()
