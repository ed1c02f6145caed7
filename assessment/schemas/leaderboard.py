"""Leaderboard schemas"""

from typing import List, Optional

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    rank: int
    learner_id: int
    total_points: float
    total_correct_answers: int
    total_questions_answered: int
    win_rate: float
    attempt_count: int
    percentile: int
    is_current_user: bool = False

    class Config:
        from_attributes = True


class CurrentUserStanding(BaseModel):
    rank: Optional[int]
    percentile: int
    total_points: float
    win_rate: float


class LeaderboardResponse(BaseModel):
    cohort_id: int
    quiz_id: Optional[int] = None
    leaderboard: List[LeaderboardEntry]
    current_user: CurrentUserStanding
    total_learners: int


class CohortMembers(BaseModel):
    cohort_id: int
    learner_ids: List[int]
