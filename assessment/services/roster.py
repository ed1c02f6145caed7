"""Cohort membership lookups used to authorize attempts and build leaderboards"""

import logging
from typing import List, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assessment.models.roster import CohortMember

logger = logging.getLogger(__name__)


class RosterService(Protocol):
    """Identity/roster collaborator"""

    def is_member(self, learner_id: int, cohort_id: int) -> bool: ...

    def members(self, cohort_id: int) -> List[int]: ...

    def cohorts_of(self, learner_id: int) -> List[int]: ...


class SQLRosterService:
    """Roster backed by the cohort_members table"""

    def __init__(self, db: Session):
        self.db = db

    def is_member(self, learner_id: int, cohort_id: int) -> bool:
        return (
            self.db.query(CohortMember.id)
            .filter(CohortMember.cohort_id == cohort_id, CohortMember.learner_id == learner_id)
            .first()
            is not None
        )

    def members(self, cohort_id: int) -> List[int]:
        rows = (
            self.db.query(CohortMember.learner_id)
            .filter(CohortMember.cohort_id == cohort_id)
            .order_by(CohortMember.learner_id)
            .all()
        )
        return [row.learner_id for row in rows]

    def cohorts_of(self, learner_id: int) -> List[int]:
        rows = (
            self.db.query(CohortMember.cohort_id)
            .filter(CohortMember.learner_id == learner_id)
            .order_by(CohortMember.cohort_id)
            .all()
        )
        return [row.cohort_id for row in rows]

    def add_member(self, cohort_id: int, learner_id: int) -> bool:
        """Enroll a learner; returns False when already enrolled"""
        self.db.add(CohortMember(cohort_id=cohort_id, learner_id=learner_id))
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return False
        logger.info("Learner enrolled", extra={"cohort_id": cohort_id, "learner_id": learner_id})
        return True

    def remove_member(self, cohort_id: int, learner_id: int) -> bool:
        deleted = (
            self.db.query(CohortMember)
            .filter(CohortMember.cohort_id == cohort_id, CohortMember.learner_id == learner_id)
            .delete()
        )
        self.db.commit()
        return deleted > 0
