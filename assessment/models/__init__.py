"""
Assessment Engine Models Package
"""

from assessment.models.quiz import (
    Quiz, Question,
    QuizStatus, QuizVariant, QuestionKind
)
from assessment.models.attempt import Attempt, AttemptStatus, FINALIZED_STATUSES
from assessment.models.roster import CohortMember

__all__ = [
    "Quiz", "Question",
    "QuizStatus", "QuizVariant", "QuestionKind",
    "Attempt", "AttemptStatus", "FINALIZED_STATUSES",
    "CohortMember",
]
