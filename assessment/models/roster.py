"""
Roster model backing the default cohort membership lookup
"""

from sqlalchemy import Column, Integer, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from assessment.core.database import Base


class CohortMember(Base):
    """Learner enrolled in a cohort (class)"""
    __tablename__ = "cohort_members"

    id = Column(Integer, primary_key=True, index=True)
    cohort_id = Column(Integer, nullable=False, index=True)
    learner_id = Column(Integer, nullable=False, index=True)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("cohort_id", "learner_id", name="uq_cohort_members_cohort_learner"),
    )
