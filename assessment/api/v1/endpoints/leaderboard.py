"""
Leaderboard endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends

from assessment.api.deps import get_leaderboard_service, get_roster
from assessment.core.exceptions import AuthorizationException
from assessment.core.security import STUDENT, Principal, get_current_principal
from assessment.schemas.leaderboard import LeaderboardResponse
from assessment.services.leaderboard import LeaderboardService
from assessment.services.roster import RosterService

router = APIRouter()


@router.get("/cohorts/{cohort_id}", response_model=LeaderboardResponse)
async def get_cohort_leaderboard(
    cohort_id: int,
    quiz_id: Optional[int] = None,
    principal: Principal = Depends(get_current_principal),
    roster: RosterService = Depends(get_roster),
    leaderboard: LeaderboardService = Depends(get_leaderboard_service),
):
    """
    Rank the members of a cohort

    Without ``quiz_id`` the ranking covers the whole battle pool; with it,
    only attempts at that quiz count. Students may only see their own cohort.
    """
    if principal.role == STUDENT and not roster.is_member(principal.user_id, cohort_id):
        raise AuthorizationException("You can only view your own cohort's leaderboard")
    return leaderboard.cohort_leaderboard(cohort_id, principal.user_id, quiz_id=quiz_id)
