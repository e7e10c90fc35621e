"""
cohortdesk/orm/cohort.py
Cohort model: a time-boxed group of students following one program.

Neither the mentor list nor the student roster is stored on the row.
Mentors come from cohort_mentor_links, students from students.cohort_id.
"""
from sqlalchemy import Column, Integer, String, Text, Date, Float, ForeignKey, Enum as SQLEnum
from enum import Enum as PyEnum

from cohortdesk.orm.base import BaseModel, isoformat


class CohortStatus(str, PyEnum):
    """Cohort lifecycle status"""
    UPCOMING = "UPCOMING"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class Cohort(BaseModel):
    __tablename__ = "cohorts"

    program_id = Column(
        Integer,
        ForeignKey("programs.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(SQLEnum(CohortStatus), default=CohortStatus.UPCOMING, nullable=False, index=True)

    # Status held immediately before archiving; Restore returns to it
    status_before_archive = Column(SQLEnum(CohortStatus, name="cohort_prior_status"), nullable=True)

    capacity = Column(Integer, nullable=False, default=30)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    enrollment_deadline = Column(Date, nullable=True)

    price = Column(Float, nullable=False, default=0.0)
    currency = Column(String(3), nullable=False, default="INR")

    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self):
        return f"<Cohort(id={self.id}, name='{self.name}', program={self.program_id}, status={self.status})>"

    def to_dict(self):
        return {
            "id": self.id,
            "program_id": self.program_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "status_before_archive": self.status_before_archive,
            "capacity": self.capacity,
            "start_date": isoformat(self.start_date),
            "end_date": isoformat(self.end_date),
            "enrollment_deadline": isoformat(self.enrollment_deadline),
            "price": self.price,
            "currency": self.currency,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
