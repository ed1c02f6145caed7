"""
Cohort roster administration
"""

from fastapi import APIRouter, Depends, Response, status

from assessment.api.deps import get_roster
from assessment.core.exceptions import NotFoundException
from assessment.core.logging import LoggerFactory
from assessment.core.security import ADMIN, TEACHER, Principal, require_roles
from assessment.schemas.leaderboard import CohortMembers
from assessment.services.roster import SQLRosterService

router = APIRouter()
audit = LoggerFactory.get_audit_logger()

staff = require_roles(TEACHER, ADMIN)


@router.get("/{cohort_id}/members", response_model=CohortMembers)
async def list_members(
    cohort_id: int,
    principal: Principal = Depends(staff),
    roster: SQLRosterService = Depends(get_roster),
):
    return CohortMembers(cohort_id=cohort_id, learner_ids=roster.members(cohort_id))


@router.put("/{cohort_id}/members/{learner_id}", status_code=status.HTTP_204_NO_CONTENT)
async def add_member(
    cohort_id: int,
    learner_id: int,
    principal: Principal = Depends(staff),
    roster: SQLRosterService = Depends(get_roster),
):
    """Enroll a learner; enrolling twice is a no-op"""
    if roster.add_member(cohort_id, learner_id):
        audit.info(
            "Cohort member added",
            extra={"cohort_id": cohort_id, "learner_id": learner_id, "by": principal.user_id},
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{cohort_id}/members/{learner_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    cohort_id: int,
    learner_id: int,
    principal: Principal = Depends(staff),
    roster: SQLRosterService = Depends(get_roster),
):
    if not roster.remove_member(cohort_id, learner_id):
        raise NotFoundException("Cohort member")
    audit.info(
        "Cohort member removed",
        extra={"cohort_id": cohort_id, "learner_id": learner_id, "by": principal.user_id},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
