"""
cohortdesk/orm/cohort_mentor_link.py
The single stored copy of the mentor <-> cohort relationship.

cohort.mentor_ids and mentor.assigned_cohort_ids are both derived from
this table, so there is exactly one row per (cohort, mentor) pair.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, Index

from cohortdesk.orm.base import Base, isoformat


class CohortMentorLink(Base):
    __tablename__ = "cohort_mentor_links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cohort_id = Column(Integer, ForeignKey("cohorts.id", ondelete="CASCADE"), nullable=False)
    mentor_id = Column(Integer, ForeignKey("mentors.id", ondelete="CASCADE"), nullable=False)
    linked_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("cohort_id", "mentor_id", name="uq_cohort_mentor_link"),
        Index("ix_cohort_mentor_links_mentor_id", "mentor_id"),
        Index("ix_cohort_mentor_links_cohort_id", "cohort_id"),
    )

    def __repr__(self):
        return f"<CohortMentorLink(cohort={self.cohort_id}, mentor={self.mentor_id})>"

    def to_dict(self):
        return {
            "cohort_id": self.cohort_id,
            "mentor_id": self.mentor_id,
            "linked_at": isoformat(self.linked_at),
        }
